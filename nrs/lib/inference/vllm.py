'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

from nrs.lib.inference import register_adapter
from nrs.lib.inference.base import FrameworkAdapter


@register_adapter("vllm")
class VllmAdapter(FrameworkAdapter):
    """vLLM-specific implementation."""

    def build_launch_command(self, model_path, port, extra_args):
        cmd = f"vllm serve {model_path} --port {port}"
        if extra_args:
            cmd = f"{cmd} {extra_args}"
        return cmd

    def health_path(self):
        return "/health"

    def chat_path(self):
        return "/v1/chat/completions"

    def process_pattern(self):
        return "vllm serve|python.*-m vllm"

    def entrypoint_override(self):
        # vllm-openai images set ENTRYPOINT to 'vllm serve'; route through env so 'bash -c' works
        return "/usr/bin/env"

    def validate_config(self, config):
        errors = super().validate_config(config)
        if "port" in config.server_args:
            errors.append("server_args.port conflicts with server.port; set the port only in server.port")
        return errors
