'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional

PARSE_ERROR_PREFIX = "PARSE_ERROR: "

REQUIRED_CAPABILITIES = (
    "build_launch_command",
    "health_path",
    "chat_path",
    "build_payload",
    "parse_response",
    "process_pattern",
    "entrypoint_override",
    "extra_mounts",
    "validate_config",
)


class ParsedResponse(NamedTuple):
    text: str
    ok: bool


class FrameworkAdapter(ABC):
    """
    Strategy translating the generic stress loop into one serving framework.

    Adapters hold no per-run or per-iteration state; the same instance is
    shared by every iteration of a run.
    """

    name = None

    @abstractmethod
    def build_launch_command(self, model_path: str, port: int, extra_args: str) -> str:
        """Full shell command that starts the server."""

    @abstractmethod
    def health_path(self) -> str:
        pass

    @abstractmethod
    def chat_path(self) -> str:
        pass

    def build_payload(
        self,
        model: str,
        prompt: str,
        default_params: Optional[Dict[str, Any]] = None,
        extra_params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        OpenAI-style chat payload.

        default_params are merged over the base message, then extra_params
        over that, so extra_params win on conflicting keys.
        """
        payload = {"model": model, "messages": [{"role": "user", "content": prompt}]}
        payload.update(default_params or {})
        payload.update(extra_params or {})
        return payload

    def parse_response(self, raw: str) -> ParsedResponse:
        """
        Extract the assistant text from an OpenAI-style chat response.

        Never raises; failures come back as a 'PARSE_ERROR: <details>' text.
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            return ParsedResponse(f"{PARSE_ERROR_PREFIX}{e}", False)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if isinstance(content, str) and content:
            return ParsedResponse(content, True)
        if content:
            # content parts, objects or numbers are not an assistant answer
            return ParsedResponse(f"{PARSE_ERROR_PREFIX}content is {type(content).__name__}, expected a string", False)
        detail = "unknown error"
        if isinstance(data, dict):
            detail = data.get("message") or data.get("error") or detail
            if isinstance(detail, dict):
                detail = detail.get("message") or json.dumps(detail)
        return ParsedResponse(f"{PARSE_ERROR_PREFIX}{detail}", False)

    def process_pattern(self) -> Optional[str]:
        """pgrep/pkill -f pattern locating the server process, None for the built-in fallback."""
        return None

    def entrypoint_override(self) -> Optional[str]:
        return None

    def extra_mounts(self) -> List[str]:
        """Additional 'host:container' volume specs this framework needs."""
        return []

    def validate_config(self, config) -> List[str]:
        """
        Framework specific validation.

        Returns:
            List of validation error messages (empty if valid)
        """
        return []
