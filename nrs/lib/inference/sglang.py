'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

from nrs.lib.inference import register_adapter
from nrs.lib.inference.base import FrameworkAdapter


@register_adapter("sglang")
class SglangAdapter(FrameworkAdapter):
    """SGLang-specific implementation."""

    def build_launch_command(self, model_path, port, extra_args):
        cmd = f"python3 -m sglang.launch_server --model-path {model_path} --port {port}"
        if extra_args:
            cmd = f"{cmd} {extra_args}"
        return cmd

    def health_path(self):
        return "/health"

    def chat_path(self):
        return "/v1/chat/completions"

    def process_pattern(self):
        return "sglang.launch_server|python.*-m sglang"

    def validate_config(self, config):
        errors = super().validate_config(config)
        for key in ("model-path", "port"):
            if key in config.server_args:
                errors.append(f"server_args.{key} is set from server.* and must not appear in server_args")
        return errors
