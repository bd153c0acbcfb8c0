from typing import Any, Dict, Type

from .base import BaseAdapter, HtmlAdapter

ADAPTER_REGISTRY: Dict[str, Type[BaseAdapter]] = {}


def register_adapter(name: str):
    """Decorator to register an adapter class."""

    def decorator(cls: Type[BaseAdapter]):
        ADAPTER_REGISTRY[name] = cls
        return cls

    return decorator


def get_adapter(source_name: str, config: Dict[str, Any]) -> BaseAdapter:
    """Factory function to create adapter instances."""
    adapter_class = ADAPTER_REGISTRY.get(source_name)
    if not adapter_class:
        raise ValueError(f"Unknown source: {source_name}. Available: {list(ADAPTER_REGISTRY.keys())}")
    return adapter_class(config)


def list_available_adapters() -> list:
    """Return list of registered adapter names."""
    return list(ADAPTER_REGISTRY.keys())


# Import adapters to register them
from . import degewo, gewobag, wohnraumkarte  # noqa: E402,F401

__all__ = [
    "BaseAdapter",
    "HtmlAdapter",
    "ADAPTER_REGISTRY",
    "get_adapter",
    "list_available_adapters",
    "register_adapter",
]
