"""Lifecycle hook system for Tributary."""

from .runner import HookEvent, HookDefinition, HookResult, HookRunner
from .loader import load_hooks_from_config

__all__ = [
    "HookEvent",
    "HookDefinition",
    "HookResult",
    "HookRunner",
    "load_hooks_from_config",
]
