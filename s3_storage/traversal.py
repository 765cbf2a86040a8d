from __future__ import annotations
"""Recursive, concurrent listing on top of single-page listing calls.

The calling thread coordinates the traversal: worker threads fetch one page
each, and as pages complete the coordinator schedules their continuation
page and, for recursive listings, one traversal per newly seen common
prefix. Directory markers (keys ending in the separator) are dropped.

Results from sibling prefixes interleave in completion order; only a
single-page, non-recursive listing keeps the store's key order.
"""
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
import logging

from .models import ListedObject, ListingPage
from .paths import is_file, resolve_address
from .services import ObjectStoreService

LOGGER = logging.getLogger(__name__)


class ObjectLister:
    """Turns paginated, prefix-filtered listings into a full object list."""

    def __init__(self, store: ObjectStoreService, *, max_workers: int | None = None):
        self._store = store
        self._max_workers = max(max_workers or store.configuration.max_concurrency, 1)

    def list_objects(
        self,
        prefix: str,
        delimiter: str | None = None,
        recursive: bool = True,
    ) -> list[ListedObject]:
        """List the objects below ``prefix`` (a ``container/key-prefix`` path).

        Raises:
            BotoCoreError | ClientError: when any page fetch fails. Pages
            already fetched are discarded and the listing as a whole must be
            treated as unreliable.
        """

        address = resolve_address(prefix)
        if not address.container:
            LOGGER.debug("Skipping listing for malformed prefix '%s'", prefix)
            return []

        results: list[ListedObject] = []
        expanded = {address.key}
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:

            def fetch(key_prefix: str, marker: str | None = None) -> Future:
                return executor.submit(
                    self._store.list_page,
                    address.container,
                    key_prefix,
                    delimiter,
                    marker,
                )

            pending = {fetch(address.key)}
            try:
                while pending:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    for future in done:
                        page: ListingPage = future.result()
                        results.extend(item for item in page.items if is_file(item.key))
                        if page.truncated and page.continuation_marker:
                            pending.add(fetch(page.prefix, page.continuation_marker))
                        if not recursive:
                            continue
                        for common_prefix in page.common_prefixes:
                            # Every prefix is expanded exactly once, whichever page reports it.
                            if common_prefix in expanded:
                                continue
                            expanded.add(common_prefix)
                            pending.add(fetch(common_prefix))
            except BaseException:
                for future in pending:
                    future.cancel()
                raise

        LOGGER.debug(
            "Listed %d object(s) under '%s' across %d prefix(es)",
            len(results),
            prefix,
            len(expanded),
        )
        return results

    def list_all_objects(self, prefix: str) -> list[ListedObject]:
        """List every object below ``prefix`` without a delimiter."""

        return self.list_objects(prefix, delimiter=None, recursive=True)
