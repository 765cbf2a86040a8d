from __future__ import annotations
"""Client configuration and the configuration override chain.

A single operation resolves its configuration as a whole record, taking the
first one available from:

1. the configuration passed explicitly to the call,
2. the configuration bound to the service instance,
3. the configuration installed with :func:`configuration_context`,
4. the process-wide default installed with :func:`use_global_configuration`.

Fields are never merged across records. The process-wide default is meant
to be written once at startup and read from anywhere afterwards.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
import os
from typing import Iterator, Mapping, Optional

from .serialization import SerializationFormat

DEFAULT_REGION = "us-east-1"
DEFAULT_MAX_CONCURRENCY = 10
DEFAULT_PAGE_SIZE = 1000


class ConfigurationError(RuntimeError):
    """Raised when no client configuration is available for an operation."""


@dataclass(frozen=True)
class ClientConfiguration:
    """Credentials and behaviour settings for talking to the object store."""

    access_key_id: str
    secret_access_key: str
    region: str = DEFAULT_REGION
    kms_key_id: Optional[str] = None
    serialization_format: SerializationFormat = SerializationFormat.JSON
    endpoint_url: Optional[str] = None
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def encryption_enabled(self) -> bool:
        return bool(self.kms_key_id and self.kms_key_id.strip())

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> "ClientConfiguration":
        env = os.environ if environ is None else environ
        return cls(
            access_key_id=env.get("AWS_ACCESS_KEY_ID", ""),
            secret_access_key=env.get("AWS_SECRET_ACCESS_KEY", ""),
            region=env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or DEFAULT_REGION,
            kms_key_id=env.get("S3_STORAGE_KMS_KEY_ID") or None,
            serialization_format=SerializationFormat.parse(env.get("S3_STORAGE_FORMAT")),
            endpoint_url=env.get("AWS_ENDPOINT_URL") or None,
        )


_global_configuration: ClientConfiguration | None = None
_context_configuration: ContextVar[ClientConfiguration | None] = ContextVar(
    "s3_storage_configuration", default=None
)


def use_global_configuration(configuration: ClientConfiguration | None) -> None:
    """Install the process-wide default configuration."""

    global _global_configuration
    _global_configuration = configuration


def get_global_configuration() -> ClientConfiguration | None:
    return _global_configuration


@contextmanager
def configuration_context(configuration: ClientConfiguration) -> Iterator[ClientConfiguration]:
    """Make ``configuration`` the default for the current context."""

    token = _context_configuration.set(configuration)
    try:
        yield configuration
    finally:
        _context_configuration.reset(token)


def resolve_configuration(
    explicit: ClientConfiguration | None = None,
    instance: ClientConfiguration | None = None,
) -> ClientConfiguration:
    for candidate in (explicit, instance, _context_configuration.get(), _global_configuration):
        if candidate is not None:
            return candidate
    raise ConfigurationError(
        "No client configuration available; pass one explicitly or call use_global_configuration()"
    )
