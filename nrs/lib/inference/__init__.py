"""
Framework adapter registry.

Adapters register themselves by name at import time; get_adapter() binds
one for the lifetime of a run and checks it is complete before any
iteration starts.
"""

from nrs.lib.errors import AdapterIncomplete, AdapterNotFound
from nrs.lib.inference.base import REQUIRED_CAPABILITIES, FrameworkAdapter, ParsedResponse

_REGISTRY = {}


def register_adapter(name):
    """Class decorator registering a framework adapter under `name`."""

    def decorator(cls):
        cls.name = name
        _REGISTRY[name] = cls
        return cls

    return decorator


def available_frameworks():
    return sorted(_REGISTRY.keys())


def missing_capabilities(adapter):
    return [cap for cap in REQUIRED_CAPABILITIES if not callable(getattr(adapter, cap, None))]


def get_adapter(name):
    """
    Return a bound adapter instance for `name`.

    Raises:
        AdapterNotFound: no adapter registered under that name
        AdapterIncomplete: the adapter lacks a required capability
    """
    if name not in _REGISTRY:
        raise AdapterNotFound(
            f"No adapter for framework '{name}'. Available: {', '.join(available_frameworks()) or '<none>'}"
        )
    try:
        adapter = _REGISTRY[name]()
    except TypeError as e:
        raise AdapterIncomplete(f"Adapter '{name}' is missing required capabilities: {e}") from e
    missing = missing_capabilities(adapter)
    if missing:
        raise AdapterIncomplete(f"Adapter '{name}' missing required capability: {', '.join(missing)}")
    return adapter


# Built-in adapters
from nrs.lib.inference import sglang, vllm  # noqa: E402,F401

__all__ = [
    "FrameworkAdapter",
    "ParsedResponse",
    "register_adapter",
    "available_frameworks",
    "get_adapter",
]
