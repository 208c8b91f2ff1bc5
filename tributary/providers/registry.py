"""Self-registering provider registry.

Providers register themselves via the @register_provider decorator.
Call discover_providers() once at startup to import all provider modules,
which triggers the decorators and populates the registry.
"""

import importlib
import pkgutil
import sys
from typing import Dict, Type

from .base import BaseProvider

_REGISTRY: Dict[str, Type[BaseProvider]] = {}

_SKIP_MODULES = ("base", "registry", "response")


def register_provider(name: str):
    """Decorator that registers a provider class under the given name.

    Usage:
        @register_provider("claude")
        class ClaudeProvider(BaseProvider):
            ...
    """
    def decorator(cls: Type[BaseProvider]):
        if not issubclass(cls, BaseProvider):
            raise TypeError(f"{cls.__name__} must be a subclass of BaseProvider")
        _REGISTRY[name] = cls
        return cls
    return decorator


def discover_providers() -> None:
    """Import every provider module so its @register_provider decorator runs.

    Modules already in sys.modules are reloaded so the decorators re-execute
    after clear_registry().
    """
    package = importlib.import_module("tributary.providers")
    for _importer, module_name, _is_pkg in pkgutil.iter_modules(package.__path__):
        if module_name in _SKIP_MODULES or module_name.startswith("_"):
            continue
        fqn = f"tributary.providers.{module_name}"
        if fqn in sys.modules:
            importlib.reload(sys.modules[fqn])
        else:
            importlib.import_module(fqn)


def get_registry() -> Dict[str, Type[BaseProvider]]:
    """Return the current provider registry (name -> class)."""
    return dict(_REGISTRY)


def clear_registry() -> None:
    """Clear the registry. Primarily for testing."""
    _REGISTRY.clear()
