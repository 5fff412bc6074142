"""Lazy attribute resolution for package-level exports.

Importing statelock must not pull in the cloud SDKs; the lock classes are
resolved on first attribute access instead.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable, Mapping


def make_getattr(module_name: str, mapping: Mapping[str, str]) -> Callable[[str], object]:
    """
    Create a module-level __getattr__ backed by name -> module path.

    Args:
        module_name: Name of the current module (for error messages).
        mapping: Export name to the module that defines it.
    """

    def __getattr__(name: str) -> object:
        target = mapping.get(name)
        if target is None:
            raise AttributeError(f"module {module_name!r} has no attribute {name!r}")
        return getattr(importlib.import_module(target), name)

    return __getattr__
