"""
Accessors for xcresulttool's typed JSON.

Scalars are wrapped as ``{"_type": {"_name": "String"}, "_value": "..."}``
and arrays as ``{"_type": {"_name": "Array"}, "_values": [...]}``.
"""

from typing import Optional


def string_value(node: dict, key: str) -> Optional[str]:
    entry = node.get(key) if isinstance(node, dict) else None
    if not isinstance(entry, dict):
        return None
    value = entry.get("_value")
    return value if isinstance(value, str) else None


def array_values(node: dict, key: str) -> list[dict]:
    entry = node.get(key) if isinstance(node, dict) else None
    if not isinstance(entry, dict):
        return []
    values = entry.get("_values")
    if not isinstance(values, list):
        return []
    return [v for v in values if isinstance(v, dict)]


def int_value(node: dict, key: str) -> Optional[int]:
    value = string_value(node, key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def float_value(node: dict, key: str) -> Optional[float]:
    value = string_value(node, key)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def reference_id(node: dict, key: str) -> Optional[str]:
    """Id of a reference object such as ``testsRef``, ``summaryRef`` or ``payloadRef``."""
    ref = node.get(key) if isinstance(node, dict) else None
    if not isinstance(ref, dict):
        return None
    return string_value(ref, "id")
