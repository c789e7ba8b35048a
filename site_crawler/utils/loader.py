from __future__ import annotations

import importlib
import inspect
from typing import Any


def load_symbol(dotted: str) -> Any:
    """
    Load a class or function from a dotted path.
    Supports both "package.module:ClassName" and "package.module.ClassName".
    """
    if ":" in dotted:
        module_name, symbol_name = dotted.split(":", 1)
    else:
        module_name, symbol_name = dotted.rsplit(".", 1)

    module = importlib.import_module(module_name)
    try:
        return getattr(module, symbol_name)
    except AttributeError as exc:
        raise ImportError(f"{module_name!r} has no attribute {symbol_name!r}") from exc


def build_storage(dotted: str, output_path: str) -> Any:
    """
    Instantiate the storage collaborator named by ``dotted``. Classes that
    accept a path get ``output_path``; the rest are built without arguments.
    """
    storage_cls = load_symbol(dotted)
    if inspect.signature(storage_cls).parameters:
        return storage_cls(output_path)
    return storage_cls()
