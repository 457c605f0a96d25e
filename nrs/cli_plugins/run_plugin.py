import logging
import os
import signal
import sys
from pathlib import Path

from .base import SubcommandPlugin
from nrs.lib.docker_lib import DockerProvider
from nrs.lib.errors import ConfigError, FatalError, PreflightError
from nrs.lib.http_lib import HttpClient
from nrs.lib.inference import get_adapter
from nrs.lib.utils_lib import server_args_to_flags
from nrs.parsers.schemas import TestMode, load_prompts, validate_config_file
from nrs.runners.stress import StressTestRunner

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _raise_system_exit(signum, frame):
    # turn SIGTERM into SystemExit so the runner's teardown still runs
    raise SystemExit(128 + signum)


class RunPlugin(SubcommandPlugin):
    def get_name(self):
        return "run"

    def get_order(self):
        return -1

    def get_parser(self, subparsers):
        parser = subparsers.add_parser("run", help="Run a stress test from a preset or config file")
        parser.add_argument("--config", required=True, help="Path to preset/config file (YAML or JSON)")
        parser.add_argument("--loops", type=int, help="Override number of test loops")
        parser.add_argument("--image", help="Override Docker image")
        parser.add_argument("--port", type=int, help="Override server port")
        parser.add_argument("--framework", help="Override framework (sglang, vllm, ...)")
        parser.add_argument(
            "--mode",
            choices=[m.value for m in TestMode],
            help="'container' restarts the container each loop, 'server' keeps it and restarts the server",
        )
        parser.add_argument("--dry-run", action="store_true", help="Show configuration without running tests")
        parser.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Console log level (default: INFO)",
        )
        parser.set_defaults(_plugin=self)
        return parser

    def get_epilog(self):
        return """
Run Commands:
  nrs run --config sglang-glm4-rocm.yaml                  Restart the container every loop
  nrs run --config sglang-glm4-rocm.yaml --mode server    Keep the container, restart the server
  nrs run --config sglang-glm4-rocm.yaml --loops 50       Override the loop count
  STRESS_LOOPS=10 nrs run --config sglang-glm4-rocm.yaml  Override through the environment
  nrs run --config sglang-glm4-rocm.yaml --dry-run        Show the resolved configuration"""

    @staticmethod
    def cli_overrides(args):
        return {
            "loops": args.loops,
            "image": args.image,
            "port": args.port,
            "framework": args.framework,
            "mode": args.mode,
        }

    @staticmethod
    def resolve_prompts_path(config, config_path):
        prompts_file = config.test.prompts_file
        if not prompts_file:
            return None
        prompts_path = Path(os.path.expanduser(prompts_file))
        if not prompts_path.is_absolute():
            prompts_path = Path(config_path).resolve().parent / prompts_path
        return prompts_path

    def load(self, args, environ=None):
        """
        Resolve configuration, adapter and prompts for a run.

        Raises:
            FatalError: If any of them is invalid
        """
        environ = os.environ if environ is None else environ
        config = validate_config_file(args.config, cli_overrides=self.cli_overrides(args), environ=environ)
        adapter = get_adapter(config.framework)
        problems = adapter.validate_config(config)
        if problems:
            raise ConfigError("; ".join(problems))
        prompts = load_prompts(self.resolve_prompts_path(config, args.config))
        return config, adapter, prompts

    @staticmethod
    def preflight(provider, environ=None):
        environ = os.environ if environ is None else environ
        if not environ.get("HF_TOKEN"):
            raise PreflightError(
                "HF_TOKEN environment variable is not set.\n"
                "  Set it before running:  export HF_TOKEN='hf_your_token_here'\n"
                "  You can generate a token at: https://huggingface.co/settings/tokens"
            )
        provider.ping()

    @staticmethod
    def print_dry_run(config, adapter):
        server_args = server_args_to_flags(config.server_args)
        server_cmd = adapter.build_launch_command(config.server.model_path, config.server.port, server_args)
        env_vars = " ".join(f"{k}={v}" for k, v in config.env.items())
        print("")
        print("=" * 60)
        print("  DRY RUN - Configuration Summary")
        print("=" * 60)
        print("")
        print(f"Framework:        {config.framework}")
        print(f"Docker Image:     {config.docker.image}")
        print(f"Model Path:       {config.server.model_path}")
        print(f"Server Port:      {config.server.port}")
        print(f"Server Args:      {server_args}")
        print("")
        print(f"Test Mode:        {config.mode.value}")
        print(f"Test Loops:       {config.test.num_loops}")
        print(f"Prompts/Loop:     {config.test.prompts_per_loop}")
        print(f"Success Pattern:  {config.test.success_pattern or '<none>'}")
        print("")
        print("Timeouts:")
        print(f"  Container:      {config.timeouts.container}s")
        print(f"  Server Startup: {config.server.startup_timeout}s")
        print(f"  Prompt:         {config.timeouts.prompt}s")
        print("")
        print("Docker Settings:")
        print(f"  SHM Size:       {config.docker.shm_size}")
        print(f"  Network:        {config.docker.network}")
        print(f"  Devices:        {' '.join(config.docker.devices) or '<none>'}")
        print("")
        print(f"Environment Vars: {env_vars or '<none>'}")
        print("")
        print(f"Error Patterns:   {' '.join(config.error_patterns) or '<none>'}")
        print("")
        print("Server Command:")
        print(f"  {server_cmd}")
        print("")
        print("=" * 60)

    def run(self, args):
        logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)
        try:
            config, adapter, prompts = self.load(args)
            if args.dry_run:
                self.print_dry_run(config, adapter)
                sys.exit(0)
            provider = DockerProvider()
            self.preflight(provider)
        except FatalError as e:
            self.fail(e)

        signal.signal(signal.SIGTERM, _raise_system_exit)
        http = HttpClient()
        try:
            runner = StressTestRunner(config, adapter, provider, http, prompts)
            summary = runner.execute()
        finally:
            http.close()

        if summary.aborted:
            print(f"ERROR: Stress test aborted: {summary.error_message}", file=sys.stderr)
        sys.exit(summary.exit_code)
