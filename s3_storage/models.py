from __future__ import annotations
"""Data models describing addresses, listings and object details."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ObjectAddress:
    """A resolved ``container/key`` pair."""

    container: str
    key: str = ""

    @property
    def is_valid(self) -> bool:
        """True when both the container and the key are non-blank."""
        return bool(self.container.strip()) and bool(self.key.strip())

    def __str__(self) -> str:
        return f"{self.container}/{self.key}" if self.key else self.container


@dataclass(frozen=True)
class ListedObject:
    """A single object returned by a listing call.

    Identity is ``(container, key)``; the remaining fields do not take part
    in equality or hashing.
    """

    container: str
    key: str
    size: Optional[int] = field(default=None, compare=False)
    last_modified: Optional[datetime] = field(default=None, compare=False)
    etag: Optional[str] = field(default=None, compare=False)

    @property
    def path(self) -> str:
        return f"{self.container}/{self.key}"


@dataclass
class ListingPage:
    """One page of a paginated listing response."""

    container: str
    prefix: str = ""
    items: list[ListedObject] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
    continuation_marker: Optional[str] = None
    truncated: bool = False


@dataclass
class ObjectDetails:
    """Metadata about a single stored object."""

    container: str
    key: str
    size: Optional[int] = None
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    content_type: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)
