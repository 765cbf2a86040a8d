from __future__ import annotations
"""Formatting and parsing helpers for the command line."""
from dataclasses import dataclass
from datetime import datetime
from importlib.metadata import PackageNotFoundError, metadata, version

from .models import ListedObject

DIST_NAME = "pys3storage"


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        distribution_metadata = metadata(dist_name)
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(
            name=dist_name,
            version="",
            summary="Path-addressed convenience layer over Amazon S3.",
        )
    return PackageInfo(
        name=distribution_metadata.get("Name") or dist_name,
        version=package_version,
        summary=distribution_metadata.get("Summary") or "",
    )


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(size, 0))
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_last_modified(last_modified: object) -> str:
    if not last_modified:
        return "-"
    if isinstance(last_modified, datetime):
        return last_modified.strftime("%Y-%m-%d %H:%M:%S %Z").strip() or last_modified.isoformat()
    return str(last_modified)


def format_listing_row(listed: ListedObject) -> str:
    return "\t".join(
        (
            format_last_modified(listed.last_modified),
            format_size(listed.size),
            listed.path,
        )
    )


def parse_metadata_pairs(pairs: list[str] | None) -> dict[str, str]:
    """Parse ``KEY=VALUE`` arguments; the first ``=`` separates key and value."""

    parsed: dict[str, str] = {}
    for pair in pairs or []:
        key, separator, value = pair.partition("=")
        if not separator or not key.strip():
            raise ValueError(f"Metadata must be given as KEY=VALUE, got '{pair}'")
        parsed[key.strip()] = value
    return parsed
