"""Utility functions and helpers for the elasticctl application."""
from typing import Any, Iterable

REDACT_KEYS = ("password", "secret", "token", "api_key")


def redact_sensitive_data(data: Any, keys: Iterable[str] = REDACT_KEYS) -> Any:
    """Recursively redact sensitive data from dictionaries and lists.

    Args:
        data: Input data that might contain sensitive information
        keys: Substrings that mark a dictionary key as sensitive

    Returns:
        Data with sensitive values redacted
    """
    keys = tuple(keys)
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if any(
                redact_key.lower() in str(k).lower()
                for redact_key in keys
            ) and v is not None else redact_sensitive_data(v, keys)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item, keys) for item in data]
    return data


def human_size(num_bytes: float) -> str:
    """Format a byte count the way ``du -h`` does (``4.0K``, ``1.2M``)."""
    for unit in ("B", "K", "M", "G", "T"):
        if num_bytes < 1024 or unit == "T":
            if unit == "B":
                return f"{int(num_bytes)}B"
            return f"{num_bytes:.1f}{unit}"
        num_bytes /= 1024
    return f"{num_bytes:.1f}T"
