from __future__ import annotations
"""Helpers for turning ``container/key`` paths into addresses."""
from .models import ObjectAddress

SEPARATOR = "/"


def resolve_address(path: str) -> ObjectAddress:
    """Split ``path`` into its container and key.

    One trailing and one leading separator are dropped, then the path is
    split on the first remaining separator only; the key keeps any further
    separators verbatim.
    """

    remainder = path or ""
    if remainder.endswith(SEPARATOR):
        remainder = remainder[: -len(SEPARATOR)]
    if remainder.startswith(SEPARATOR):
        remainder = remainder[len(SEPARATOR):]
    container, _, key = remainder.partition(SEPARATOR)
    return ObjectAddress(container=container.strip(), key=key.strip())


def is_directory(path: str) -> bool:
    return (path or "").strip().endswith(SEPARATOR)


def is_file(path: str) -> bool:
    return not is_directory(path)


def join_path(base: str, name: str) -> str:
    """Append ``name`` to ``base`` with exactly one separator between them."""

    cleaned_base = (base or "").rstrip(SEPARATOR)
    cleaned_name = (name or "").lstrip(SEPARATOR)
    if not cleaned_base:
        return cleaned_name
    if not cleaned_name:
        return cleaned_base
    return f"{cleaned_base}{SEPARATOR}{cleaned_name}"
