from __future__ import annotations
"""Path-addressed storage service built on the listing, search and transfer layers."""
from dataclasses import replace
import logging
import os
from typing import Any, BinaryIO, Callable, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .models import ListedObject, ObjectAddress
from .paths import is_directory, is_file, resolve_address
from .search import Criteria, ObjectFinder
from .serialization import SerializationFormat
from .services import DEFAULT_PRESIGN_EXPIRY, ObjectStoreService, Payload
from .settings import ClientConfiguration, resolve_configuration
from .transfer import TransferPipeline
from .traversal import ObjectLister

LOGGER = logging.getLogger(__name__)

Target = Optional[Callable[..., Any]]


class SimpleStorageService:
    """Convenience layer over S3 addressed with ``container/key`` paths.

    Every operation accepts an optional ``configuration`` overriding the one
    bound to the instance, which in turn overrides the context-scoped and
    process-wide defaults (see :mod:`s3_storage.settings`).

    Malformed paths never raise: uploads become no-ops, and copy, delete,
    existence checks and URL generation return ``None`` or ``False``.
    """

    def __init__(
        self,
        configuration: ClientConfiguration | None = None,
        *,
        client_factory: Callable[..., object] | None = None,
    ):
        self._configuration = configuration
        self._client_factory = client_factory

    @property
    def configuration(self) -> ClientConfiguration | None:
        return self._configuration

    def with_configuration(self, configuration: ClientConfiguration | None) -> "SimpleStorageService":
        """Replace the instance-bound configuration and return the service."""

        self._configuration = configuration
        return self

    def resolve_configuration(self, configuration: ClientConfiguration | None = None) -> ClientConfiguration:
        return resolve_configuration(configuration, self._configuration)

    # Addressing --------------------------------------------------------

    @staticmethod
    def resolve_address(path: str) -> ObjectAddress:
        return resolve_address(path)

    @staticmethod
    def is_directory(path: str) -> bool:
        return is_directory(path)

    @staticmethod
    def is_file(path: str) -> bool:
        return is_file(path)

    # Session -----------------------------------------------------------

    def get_client(self, configuration: ClientConfiguration | None = None):
        """Return a new authenticated S3 client; the caller must close it."""

        return self._store(configuration).create_client()

    # Existence ---------------------------------------------------------

    def container_exists(self, path: str, configuration: ClientConfiguration | None = None) -> bool:
        address = resolve_address(path)
        if not address.container:
            return False
        try:
            self._store(configuration).get_container_location(address.container)
        except (BotoCoreError, ClientError):
            LOGGER.debug("Container check failed for '%s'", address.container, exc_info=True)
            return False
        return True

    def object_exists(self, path: str, configuration: ClientConfiguration | None = None) -> bool:
        return self._transfer(configuration).object_exists(path)

    # Mutation ----------------------------------------------------------

    def copy(
        self,
        source_path: str,
        target_path: str,
        configuration: ClientConfiguration | None = None,
    ) -> dict | None:
        source = resolve_address(source_path)
        target = resolve_address(target_path)
        if not source.is_valid or not target.is_valid:
            LOGGER.debug("Skipping copy from '%s' to '%s'", source_path, target_path)
            return None
        return self._store(configuration).copy_object(
            source.container,
            source.key,
            target.container,
            target.key,
        )

    def delete_if_exists(self, path: str, configuration: ClientConfiguration | None = None) -> dict | None:
        """Delete the object at ``path``; a missing object is a no-op returning ``None``."""

        if not self.object_exists(path, configuration):
            return None
        address = resolve_address(path)
        return self._store(configuration).delete_object(address.container, address.key)

    # Downloads ---------------------------------------------------------

    def download_stream(self, path: str, configuration: ClientConfiguration | None = None) -> BinaryIO:
        return self._transfer(configuration).download_stream(path)

    def download(
        self,
        path: str,
        target: Target = None,
        *,
        format: SerializationFormat | str | None = None,
        configuration: ClientConfiguration | None = None,
    ) -> Any:
        """Download the object at ``path`` and decode it.

        ``target`` builds the result from the decoded data, e.g. a dataclass.
        """

        return self._transfer(configuration).download_document(path, target, format=format)

    def download_directory(
        self,
        path: str,
        destination: str | os.PathLike,
        *,
        progress_callback: Optional[Callable[[int], None]] = None,
        cancel_requested: Optional[Callable[[], bool]] = None,
        configuration: ClientConfiguration | None = None,
    ):
        return self._transfer(configuration).download_directory(
            path,
            destination,
            progress_callback=progress_callback,
            cancel_requested=cancel_requested,
        )

    # Listing -----------------------------------------------------------

    def list_objects(
        self,
        prefix: str,
        delimiter: str | None = None,
        recursive: bool = True,
        *,
        target: Target = None,
        format: SerializationFormat | str | None = None,
        configuration: ClientConfiguration | None = None,
    ) -> list:
        """List objects below ``prefix``; with ``target``, download and decode each one."""

        objects = self._lister(configuration).list_objects(prefix, delimiter, recursive)
        if target is None:
            return objects
        return self._transfer(configuration).download_documents(objects, target, format=format)

    def list_all_objects(
        self,
        prefix: str,
        *,
        target: Target = None,
        format: SerializationFormat | str | None = None,
        configuration: ClientConfiguration | None = None,
    ) -> list:
        return self.list_objects(
            prefix,
            None,
            True,
            target=target,
            format=format,
            configuration=configuration,
        )

    # Search ------------------------------------------------------------

    def find_objects(
        self,
        prefix: str,
        criteria: Criteria,
        *,
        single: bool = False,
        target: Target = None,
        format: SerializationFormat | str | None = None,
        configuration: ClientConfiguration | None = None,
    ) -> list:
        """Find objects below ``prefix``.

        ``criteria`` is either a regular expression matched case-insensitively
        against keys, or a mapping of metadata that must all be present with
        equal values. ``single`` stops scheduling metadata lookups after the
        first match; a few extra matches may still be returned.
        """

        matches = self._finder(configuration).find_objects(prefix, criteria, single=single)
        if target is None:
            return matches
        return self._transfer(configuration).download_documents(matches, target, format=format)

    def find_object(
        self,
        prefix: str,
        criteria: Criteria,
        *,
        target: Target = None,
        format: SerializationFormat | str | None = None,
        configuration: ClientConfiguration | None = None,
    ) -> Any:
        match: ListedObject | None = self._finder(configuration).find_object(prefix, criteria)
        if match is None or target is None:
            return match
        return self._transfer(configuration).download_document(match.path, target, format=format)

    # URLs --------------------------------------------------------------

    def object_url(
        self,
        path: str,
        *,
        expires_in: int = DEFAULT_PRESIGN_EXPIRY,
        configuration: ClientConfiguration | None = None,
    ) -> str | None:
        address = resolve_address(path)
        if not address.is_valid:
            return None
        return self._store(configuration).presign_get(address.container, address.key, expires_in=expires_in)

    # Uploads -----------------------------------------------------------

    def upload(
        self,
        path: str,
        data: Payload | str | os.PathLike,
        *,
        metadata: Mapping[str, object] | None = None,
        acl: str | None = None,
        configuration: ClientConfiguration | None = None,
    ) -> None:
        """Upload bytes, a stream, a local file or directory, or literal text."""

        self._transfer(configuration).upload(path, data, metadata=metadata, acl=acl)

    def upload_document(
        self,
        path: str,
        value: Any,
        *,
        metadata: Mapping[str, object] | None = None,
        acl: str | None = None,
        format: SerializationFormat | str | None = None,
        configuration: ClientConfiguration | None = None,
    ) -> None:
        """Serialize ``value`` and upload it; strings follow the local path dispatch."""

        self._transfer(configuration).upload_document(
            path,
            value,
            metadata=metadata,
            acl=acl,
            format=format,
        )

    # Wiring ------------------------------------------------------------

    def _store(self, configuration: ClientConfiguration | None) -> ObjectStoreService:
        return ObjectStoreService(self.resolve_configuration(configuration), self._client_factory)

    def _lister(self, configuration: ClientConfiguration | None) -> ObjectLister:
        return ObjectLister(self._store(configuration))

    def _finder(self, configuration: ClientConfiguration | None) -> ObjectFinder:
        return ObjectFinder(self._store(configuration))

    def _transfer(self, configuration: ClientConfiguration | None) -> TransferPipeline:
        return TransferPipeline(self._store(configuration))


class _FormatLockedStorageService(SimpleStorageService):
    serialization_format = SerializationFormat.JSON

    def resolve_configuration(self, configuration: ClientConfiguration | None = None) -> ClientConfiguration:
        resolved = super().resolve_configuration(configuration)
        if resolved.serialization_format is self.serialization_format:
            return resolved
        return replace(resolved, serialization_format=self.serialization_format)


class JsonSimpleStorageService(_FormatLockedStorageService):
    """Storage service that always reads and writes documents as JSON."""

    serialization_format = SerializationFormat.JSON


class XmlSimpleStorageService(_FormatLockedStorageService):
    """Storage service that always reads and writes documents as XML."""

    serialization_format = SerializationFormat.XML


def to_storage(
    value: Any,
    path: str,
    *,
    service: SimpleStorageService | None = None,
    metadata: Mapping[str, object] | None = None,
    acl: str | None = None,
    configuration: ClientConfiguration | None = None,
) -> None:
    """Serialize ``value`` and upload it to ``path``.

    Without a ``service`` the default configuration chain is used.
    """

    (service or SimpleStorageService()).upload_document(
        path,
        value,
        metadata=metadata,
        acl=acl,
        configuration=configuration,
    )
