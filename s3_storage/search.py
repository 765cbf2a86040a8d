from __future__ import annotations
"""Filtering listed objects by key pattern or stored metadata."""
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
import logging
import re
import threading
from typing import Optional, Union

from .models import ListedObject
from .services import ObjectStoreService
from .traversal import ObjectLister

LOGGER = logging.getLogger(__name__)

Criteria = Union[str, "re.Pattern[str]", Mapping[str, object], "SearchPredicate"]


def normalize_metadata_key(key: str) -> str:
    """Header names cannot contain spaces; replace them with hyphens."""

    return str(key).strip().replace(" ", "-")


def normalize_metadata(metadata: Mapping[str, object] | None) -> dict[str, str]:
    """Normalize keys and drop blank values, ready to be sent as headers."""

    normalized: dict[str, str] = {}
    for key, value in (metadata or {}).items():
        if value is None:
            continue
        text = str(value)
        if not text.strip():
            continue
        normalized[normalize_metadata_key(key)] = text
    return normalized


@dataclass(frozen=True)
class SearchPredicate:
    """Either a case-insensitive key pattern or a metadata equality map."""

    pattern: Optional["re.Pattern[str]"] = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_pattern(cls, pattern: "str | re.Pattern[str]") -> "SearchPredicate":
        """Compile ``pattern``; an invalid expression raises :class:`re.error`."""

        source = pattern.pattern if isinstance(pattern, re.Pattern) else pattern
        return cls(pattern=re.compile(source, re.IGNORECASE))

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, object]) -> "SearchPredicate":
        return cls(
            metadata={normalize_metadata_key(key): str(value) for key, value in metadata.items()}
        )

    @classmethod
    def coerce(cls, criteria: Criteria) -> "SearchPredicate":
        if isinstance(criteria, SearchPredicate):
            return criteria
        if isinstance(criteria, Mapping):
            return cls.from_metadata(criteria)
        return cls.from_pattern(criteria)

    @property
    def uses_metadata(self) -> bool:
        return self.pattern is None

    def matches_key(self, key: str) -> bool:
        return bool(self.pattern and self.pattern.search(key))

    def matches_metadata(self, stored: Mapping[str, str]) -> bool:
        # Stored header names come back lower-cased, so names compare case-insensitively.
        available = {name.lower(): value for name, value in stored.items()}
        for name, expected in self.metadata.items():
            if available.get(name.lower()) != expected:
                return False
        return True


class ObjectFinder:
    """Runs pattern and metadata searches over recursive listings."""

    def __init__(
        self,
        store: ObjectStoreService,
        lister: ObjectLister | None = None,
        *,
        max_workers: int | None = None,
    ):
        self._store = store
        self._lister = lister or ObjectLister(store, max_workers=max_workers)
        self._max_workers = max(max_workers or store.configuration.max_concurrency, 1)

    def find_objects(
        self,
        prefix: str,
        criteria: Criteria,
        *,
        single: bool = False,
    ) -> list[ListedObject]:
        predicate = SearchPredicate.coerce(criteria)
        if predicate.uses_metadata:
            return self._find_by_metadata(prefix, predicate, single=single)
        return self._find_by_pattern(prefix, predicate)

    def find_object(self, prefix: str, criteria: Criteria) -> ListedObject | None:
        """Return the first match, or ``None``.

        Pattern searches still run the full listing; metadata searches stop
        scheduling metadata fetches once a match is seen.
        """

        matches = self.find_objects(prefix, criteria, single=True)
        return matches[0] if matches else None

    def _find_by_pattern(self, prefix: str, predicate: SearchPredicate) -> list[ListedObject]:
        candidates = self._lister.list_objects(prefix, recursive=True)
        matches = [candidate for candidate in candidates if predicate.matches_key(candidate.key)]
        LOGGER.debug(
            "Pattern '%s' matched %d of %d object(s) under '%s'",
            predicate.pattern.pattern,
            len(matches),
            len(candidates),
            prefix,
        )
        return matches

    def _find_by_metadata(
        self,
        prefix: str,
        predicate: SearchPredicate,
        *,
        single: bool,
    ) -> list[ListedObject]:
        candidates = self._lister.list_objects(prefix, recursive=True)
        found = threading.Event()

        def check(candidate: ListedObject) -> ListedObject | None:
            # Best effort: checks that already passed this point still run to completion.
            if single and found.is_set():
                return None
            details = self._store.head_object(candidate.container, candidate.key)
            if details is None or not predicate.matches_metadata(details.metadata):
                return None
            found.set()
            return candidate

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            matches = [match for match in executor.map(check, candidates) if match is not None]
        LOGGER.debug(
            "Metadata search matched %d of %d object(s) under '%s'",
            len(matches),
            len(candidates),
            prefix,
        )
        return matches
