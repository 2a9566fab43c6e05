"""Small helpers shared by the services."""
import importlib
import re
from typing import Any


def import_string(dotted_path: str) -> Any:
    """
    Import a class or attribute from a dotted path like "package.module.Name".

    Raises ImportError when the module or the attribute does not exist.
    """
    try:
        module_path, attribute = dotted_path.rsplit(".", 1)
    except ValueError as e:
        raise ImportError(f"{dotted_path} is not a dotted import path") from e

    module = importlib.import_module(module_path)
    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise ImportError(f"Module {module_path} has no attribute {attribute}") from e


def snake_case(value: str) -> str:
    """'ArchivedItem' / 'archived-item' / 'archived item' -> 'archived_item'."""
    value = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", value)
    value = re.sub(r"[^0-9a-zA-Z]+", "_", value)
    return value.strip("_").lower()
