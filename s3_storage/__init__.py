"""Path-addressed convenience layer over Amazon S3 and compatible stores."""
from .models import ListedObject, ListingPage, ObjectAddress, ObjectDetails
from .paths import is_directory, is_file, join_path, resolve_address
from .search import SearchPredicate
from .serialization import SerializationError, SerializationFormat, deserialize, serialize
from .services import ObjectNotFoundError, ObjectStoreService, TransferCancelledError
from .settings import (
    ClientConfiguration,
    ConfigurationError,
    configuration_context,
    get_global_configuration,
    use_global_configuration,
)
from .storage import (
    JsonSimpleStorageService,
    SimpleStorageService,
    XmlSimpleStorageService,
    to_storage,
)

__all__ = [
    "ClientConfiguration",
    "ConfigurationError",
    "JsonSimpleStorageService",
    "ListedObject",
    "ListingPage",
    "ObjectAddress",
    "ObjectDetails",
    "ObjectNotFoundError",
    "ObjectStoreService",
    "SearchPredicate",
    "SerializationError",
    "SerializationFormat",
    "SimpleStorageService",
    "TransferCancelledError",
    "XmlSimpleStorageService",
    "configuration_context",
    "deserialize",
    "get_global_configuration",
    "is_directory",
    "is_file",
    "join_path",
    "resolve_address",
    "serialize",
    "to_storage",
    "use_global_configuration",
]
