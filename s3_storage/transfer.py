from __future__ import annotations
"""Upload and download pipeline, including local directory mirroring."""
from concurrent.futures import ThreadPoolExecutor
import logging
import os
from pathlib import Path
from typing import Any, BinaryIO, Callable, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .models import ListedObject
from .paths import SEPARATOR, join_path, resolve_address
from .search import normalize_metadata
from .serialization import SerializationFormat, deserialize, serialize
from .services import (
    ObjectNotFoundError,
    ObjectStoreService,
    Payload,
    build_transfer_callback,
)
from .traversal import ObjectLister

LOGGER = logging.getLogger(__name__)


class TransferPipeline:
    """Serializes, uploads, downloads and mirrors objects."""

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

    @property
    def serialization_format(self) -> SerializationFormat:
        return self._store.configuration.serialization_format

    # Downloads ---------------------------------------------------------

    def object_exists(self, path: str) -> bool:
        """True when ``path`` names an existing object.

        Any backend failure counts as "does not exist".
        """

        address = resolve_address(path)
        if not address.is_valid:
            return False
        try:
            return self._store.head_object(address.container, address.key) is not None
        except (BotoCoreError, ClientError):
            LOGGER.debug("Existence check failed for '%s'", path, exc_info=True)
            return False

    def download_stream(self, path: str) -> BinaryIO:
        """Return the object's content.

        Raises:
            ObjectNotFoundError: when the existence probe fails.
        """

        if not self.object_exists(path):
            raise ObjectNotFoundError(f"Object '{path}' not found")
        address = resolve_address(path)
        return self._store.get_object(address.container, address.key)

    def download_document(
        self,
        path: str,
        target: Optional[Callable[..., Any]] = None,
        *,
        format: SerializationFormat | str | None = None,
    ) -> Any:
        with self.download_stream(path) as stream:
            text = stream.read().decode("utf-8")
        return deserialize(text, format or self.serialization_format, target)

    def download_documents(
        self,
        objects: list[ListedObject],
        target: Optional[Callable[..., Any]] = None,
        *,
        format: SerializationFormat | str | None = None,
    ) -> list[Any]:
        """Fetch and decode every listed object concurrently."""

        if not objects:
            return []
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            return list(
                executor.map(
                    lambda listed: self.download_document(listed.path, target, format=format),
                    objects,
                )
            )

    def download_directory(
        self,
        path: str,
        destination: str | os.PathLike,
        *,
        progress_callback: Optional[Callable[[int], None]] = None,
        cancel_requested: Optional[Callable[[], bool]] = None,
    ) -> list[Path]:
        """Mirror every object below ``path`` into the ``destination`` directory.

        Returns the local files written. ``progress_callback`` receives the
        cumulative byte count over all objects. Only keys below ``path`` as a
        directory are mirrored; keys that merely share its prefix, and keys
        whose ``.``/``..`` segments would land outside ``destination``, are
        skipped.
        """

        address = resolve_address(path)
        if not address.container:
            LOGGER.debug("Skipping download for malformed path '%s'", path)
            return []
        root = Path(destination)
        base = address.key.rstrip(SEPARATOR)
        callback = build_transfer_callback(progress_callback, cancel_requested)

        targets: list[tuple[ListedObject, Path]] = []
        for listed in self._lister.list_objects(path, recursive=True):
            relative = _relative_key(listed.key, base)
            if relative is None:
                LOGGER.debug("Skipping '%s': not below '%s'", listed.path, path)
                continue
            local_path = _local_path(root, relative)
            if local_path is None:
                LOGGER.warning("Skipping '%s': key escapes destination '%s'", listed.path, root)
                continue
            targets.append((listed, local_path))
        if not targets:
            return []

        def fetch(target: tuple[ListedObject, Path]) -> Path:
            listed, local_path = target
            local_path.parent.mkdir(parents=True, exist_ok=True)
            self._store.download_file(listed.container, listed.key, str(local_path), callback=callback)
            return local_path

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            written = list(executor.map(fetch, targets))
        LOGGER.debug("Downloaded %d object(s) from '%s' into '%s'", len(written), path, root)
        return written

    # Uploads -----------------------------------------------------------

    def upload_payload(
        self,
        path: str,
        data: Payload,
        *,
        metadata: Mapping[str, object] | None = None,
        acl: str | None = None,
    ) -> dict | None:
        """Store bytes or a binary stream at ``path``.

        A path without both a container and a key is silently ignored and
        ``None`` is returned.
        """

        address = resolve_address(path)
        if not address.is_valid:
            LOGGER.debug("Skipping upload to malformed path '%s'", path)
            return None
        if isinstance(data, bytearray):
            data = bytes(data)
        return self._store.put_object(
            address.container,
            address.key,
            data,
            metadata=normalize_metadata(metadata),
            acl=acl,
        )

    def upload(
        self,
        path: str,
        data: Payload | str | os.PathLike,
        *,
        metadata: Mapping[str, object] | None = None,
        acl: str | None = None,
    ) -> None:
        """Upload bytes, a stream, a local file or directory, or literal text.

        Strings and path-like values naming a local directory are mirrored
        recursively, one object per file at ``path/<relative path>``; a local
        file is uploaded as binary; any other string is uploaded as UTF-8 text.
        """

        if isinstance(data, (str, os.PathLike)):
            self._upload_local_or_content(path, data, metadata=metadata, acl=acl, as_text=False)
        else:
            self.upload_payload(path, data, metadata=metadata, acl=acl)

    def upload_document(
        self,
        path: str,
        value: Any,
        *,
        metadata: Mapping[str, object] | None = None,
        acl: str | None = None,
        format: SerializationFormat | str | None = None,
    ) -> None:
        """Upload a serialized value.

        Strings keep the local directory/file/literal dispatch of
        :meth:`upload`, with files read and sent as UTF-8 text. Every other
        value is serialized in the configured format first.
        """

        if isinstance(value, (str, os.PathLike)):
            self._upload_local_or_content(path, value, metadata=metadata, acl=acl, as_text=True)
            return
        text = serialize(value, format or self.serialization_format)
        self.upload_payload(path, text.encode("utf-8"), metadata=metadata, acl=acl)

    def _upload_local_or_content(
        self,
        path: str,
        source: str | os.PathLike,
        *,
        metadata: Mapping[str, object] | None,
        acl: str | None,
        as_text: bool,
    ) -> None:
        local = Path(source) if os.fspath(source) else None
        if _is_existing(local, "is_dir"):
            self._upload_directory(path, local, metadata=metadata, acl=acl, as_text=as_text)
            return
        if _is_existing(local, "is_file"):
            self.upload_payload(path, _read_file(local, as_text), metadata=metadata, acl=acl)
            return
        self.upload_payload(path, os.fspath(source).encode("utf-8"), metadata=metadata, acl=acl)

    def _upload_directory(
        self,
        path: str,
        directory: Path,
        *,
        metadata: Mapping[str, object] | None,
        acl: str | None,
        as_text: bool,
    ) -> None:
        entries = list(_walk_files(path, directory))
        if not entries:
            LOGGER.debug("Nothing to upload from empty directory '%s'", directory)
            return

        def send(entry: tuple[str, Path]) -> None:
            object_path, local_file = entry
            self.upload_payload(object_path, _read_file(local_file, as_text), metadata=metadata, acl=acl)

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            list(executor.map(send, entries))
        LOGGER.debug("Uploaded %d file(s) from '%s' to '%s'", len(entries), directory, path)


def _is_existing(local: Path | None, check: str) -> bool:
    if local is None:
        return False
    # Literal content can be longer than the OS allows for a path name.
    try:
        return getattr(local, check)()
    except (OSError, ValueError):
        return False


def _relative_key(key: str, base: str) -> str | None:
    """Return ``key`` relative to the directory ``base``, or ``None`` if outside it."""

    if not base:
        return key
    if key == base:
        return key.rsplit(SEPARATOR, 1)[-1]
    scope = f"{base}{SEPARATOR}"
    if not key.startswith(scope):
        return None
    return key[len(scope):]


def _local_path(root: Path, relative: str) -> Path | None:
    parts = [part for part in relative.split(SEPARATOR) if part]
    if not parts or any(part in (".", "..") for part in parts):
        return None
    local_path = root.joinpath(*parts)
    if not local_path.resolve().is_relative_to(root.resolve()):
        return None
    return local_path


def _read_file(local_file: Path, as_text: bool) -> bytes:
    if as_text:
        return local_file.read_text(encoding="utf-8").encode("utf-8")
    return local_file.read_bytes()


def _walk_files(path: str, directory: Path):
    """Yield ``(object path, local file)`` for every file below ``directory``."""

    with os.scandir(directory) as entries:
        children = sorted(entries, key=lambda entry: entry.name)
    for child in children:
        object_path = join_path(path, child.name)
        if child.is_dir():
            yield from _walk_files(object_path, Path(child.path))
        elif child.is_file():
            yield object_path, Path(child.path)
