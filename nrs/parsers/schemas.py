"""
Pydantic schemas for stress test configuration files and prompt files.

Configuration is loaded once at startup, overrides are applied to the raw
mapping by pure functions, and the result is validated into a frozen model
that every component reads from. Validation happens before any container
is touched so mistakes fail fast with a clear message.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union
import copy
import json
import logging
import re

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from nrs.lib.errors import ConfigError
from nrs.lib.utils_lib import expand_home

log = logging.getLogger(__name__)

ENV_PREFIX = "STRESS_"

# override name -> dotted config key
OVERRIDE_KEYS = {
    "loops": "test.num_loops",
    "image": "docker.image",
    "port": "server.port",
    "framework": "framework",
    "mode": "test.mode",
}

DEFAULT_PROMPTS_FILE = Path(__file__).resolve().parent.parent / "input" / "prompts.json"
DEFAULT_PARAMS = {"stream": False, "max_tokens": 512}
DEFAULT_PROMPT = "Hello, how are you?"


class TestMode(str, Enum):
    """container: new container every iteration. server: one container, server restarted every iteration."""

    CONTAINER = "container"
    SERVER = "server"


class DockerSection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    image: str = Field(default="", description="Docker image to test")
    shm_size: str = Field(default="128G", description="Shared memory size for the container")
    network: str = Field(default="host", description="Docker network mode")
    devices: List[str] = Field(default_factory=list, description="Host devices passed into the container")


class ServerSection(BaseModel):
    # model_path is a config key, not a pydantic attribute
    model_config = ConfigDict(extra="forbid", frozen=True, protected_namespaces=())

    port: int = Field(default=30000, ge=1, le=65535)
    model_path: str = Field(default="", description="Model path or HuggingFace model id")
    startup_timeout: float = Field(default=600, gt=0, description="Seconds to wait for readiness")
    health_interval: float = Field(default=5, gt=0, description="Seconds between health polls")
    health_timeout: float = Field(default=5, gt=0, description="Timeout of a single health request")


class TimeoutsSection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    container: float = Field(default=900, gt=0, description="Hard ceiling for one iteration (watchdog)")
    prompt: float = Field(default=120, gt=0, description="Timeout of a single prompt request")


class TestSection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    num_loops: int = Field(default=20, ge=1)
    prompts_per_loop: int = Field(default=10, ge=1)
    success_pattern: Optional[str] = Field(default=None, description="Case-insensitive regex every answer must match")
    mode: TestMode = Field(default=TestMode.CONTAINER)
    prompts_file: Optional[str] = Field(default=None, description="Prompts JSON, defaults to the packaged prompts.json")
    log_flush_delay: float = Field(default=2, ge=0, description="Seconds to let logs flush before scanning")

    @field_validator("success_pattern")
    @classmethod
    def validate_pattern_compiles(cls, v: Optional[str]) -> Optional[str]:
        if v in (None, ""):
            return None
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"success_pattern '{v}' is not a valid regular expression: {e}")
        return v


class WorkspaceSection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_dir: str = Field(default="$HOME", validate_default=True, description="Host directory mounted at /workspace/ and holding results")
    mounts: List[str] = Field(default_factory=list, description="Sub directories of base_dir mounted individually")

    @field_validator("base_dir")
    @classmethod
    def expand_base_dir(cls, v: str) -> str:
        return expand_home(v)


class StressConfigFile(BaseModel):
    """
    Schema for a stress test preset.

    Usage:
        raw = load_raw_config("presets/sglang-glm4-rocm.yaml")
        config = StressConfigFile.model_validate(apply_overrides(raw, os.environ, {"loops": 5}))
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    framework: str = Field(default="sglang")
    docker: DockerSection = Field(default_factory=DockerSection)
    server: ServerSection = Field(default_factory=ServerSection)
    server_args: Dict[str, Any] = Field(default_factory=dict, description="Converted to CLI flags of the server")
    timeouts: TimeoutsSection = Field(default_factory=TimeoutsSection)
    test: TestSection = Field(default_factory=TestSection)
    workspace: WorkspaceSection = Field(default_factory=WorkspaceSection)
    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment variables for the container")
    error_patterns: List[str] = Field(default_factory=list, description="Log substrings that fail an iteration")

    @field_validator("env", mode="before")
    @classmethod
    def stringify_env(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            # let the Dict[str, str] check report it
            return v
        return {str(k): str(val) for k, val in v.items()}

    @field_validator("server_args", mode="before")
    @classmethod
    def default_server_args(cls, v):
        return v or {}

    @field_validator("error_patterns", mode="before")
    @classmethod
    def default_error_patterns(cls, v):
        if not v:
            return []
        if isinstance(v, str):
            return [v]
        if not isinstance(v, list):
            return v
        return [str(p) for p in v]

    @model_validator(mode="after")
    def validate_required(self):
        """Image and model have no sensible default and must come from the file or an override."""
        if not self.docker.image:
            raise ValueError("Docker image not specified. Set docker.image in config or use --image")
        if not self.server.model_path:
            raise ValueError("Model path not specified. Set server.model_path in config")
        return self

    @property
    def mode(self) -> TestMode:
        return self.test.mode

    @property
    def persistent(self) -> bool:
        return self.test.mode == TestMode.SERVER


class PromptEntry(BaseModel):
    content: str


class PromptsFile(BaseModel):
    """Schema for prompts.json: shared request parameters plus a list of prompts."""

    default_params: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_PARAMS))
    extra_params: Dict[str, Any] = Field(default_factory=dict)
    prompts: List[PromptEntry] = Field(default_factory=lambda: [PromptEntry(content=DEFAULT_PROMPT)])

    @property
    def prompt_content(self) -> str:
        if not self.prompts:
            return DEFAULT_PROMPT
        return self.prompts[0].content


def load_raw_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a YAML or JSON config file into a plain mapping.

    Raises:
        ConfigError: If the file is missing, unreadable or not a mapping
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path) as f:
            if config_path.suffix in (".yaml", ".yml"):
                raw_config = yaml.safe_load(f)
            else:
                raw_config = json.load(f)
    except (OSError, yaml.YAMLError, ValueError) as e:
        raise ConfigError(f"Could not read configuration {config_path}: {e}") from e

    if raw_config is None:
        raise ConfigError(f"Configuration file is empty: {config_path}")
    if not isinstance(raw_config, dict):
        raise ConfigError(f"Configuration file must contain a mapping at top level: {config_path}")
    return raw_config


def _set_dotted(data: Dict[str, Any], dotted_key: str, value: Any):
    keys = dotted_key.split(".")
    node = data
    for key in keys[:-1]:
        if not isinstance(node.get(key), dict):
            node[key] = {}
        node = node[key]
    node[keys[-1]] = value


def env_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    """Pick the STRESS_* overrides out of an environment mapping."""
    overrides = {}
    for name in OVERRIDE_KEYS:
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value:
            overrides[name] = value
    return overrides


def apply_overrides(
    raw_config: Dict[str, Any],
    environ: Optional[Mapping[str, str]] = None,
    cli_overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Return a copy of raw_config with overrides applied.

    Precedence, highest first: CLI overrides, STRESS_* environment
    variables, config file values, schema defaults. None or empty CLI
    values are treated as not given.
    """
    merged = copy.deepcopy(raw_config)
    layers = [env_overrides(environ or {}), dict(cli_overrides or {})]
    for layer in layers:
        for name, value in layer.items():
            if name not in OVERRIDE_KEYS or value in (None, ""):
                continue
            _set_dotted(merged, OVERRIDE_KEYS[name], value)
    return merged


def validate_config_file(
    config_path: Union[str, Path],
    cli_overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> StressConfigFile:
    """
    Load, override and validate a configuration file.

    Args:
        config_path: Path to configuration file (YAML or JSON)
        cli_overrides: Values from the command line, keyed as in OVERRIDE_KEYS
        environ: Environment mapping used for STRESS_* overrides

    Returns:
        Validated, frozen StressConfigFile

    Raises:
        ConfigError: If the file cannot be read or the result is invalid
    """
    raw_config = load_raw_config(config_path)
    merged = apply_overrides(raw_config, environ, cli_overrides)
    try:
        return StressConfigFile.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e


def load_prompts(prompts_path: Optional[Union[str, Path]] = None) -> PromptsFile:
    """
    Load the prompts file, falling back to built-in defaults when it is missing.

    Raises:
        ConfigError: If the file exists but is not valid
    """
    prompts_path = Path(prompts_path) if prompts_path else DEFAULT_PROMPTS_FILE
    if not prompts_path.exists():
        log.warning(f"Prompts file not found: {prompts_path}. Using defaults.")
        return PromptsFile()
    try:
        with open(prompts_path) as f:
            return PromptsFile.model_validate(json.load(f))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Invalid prompts file {prompts_path}: {e}") from e
