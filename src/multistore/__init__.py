"""multistore — redundant encrypted storage across independent backends."""

from multistore.domain.enums import RedundancyLevel, StorageLocation
from multistore.domain.exceptions import (
    AllProvidersFailedError,
    BackendError,
    InsufficientProvidersError,
    NotInitializedError,
    RedundancyError,
    RedundancyNotMetError,
    StorageError,
)
from multistore.domain.value_objects import DeleteReceipt, ObjectRef, WriteReceipt
from multistore.shared.providers import ProviderRegistry, RedundancyPolicy

__version__ = "0.1.0"

__all__ = [
    "AllProvidersFailedError",
    "BackendError",
    "DeleteReceipt",
    "InsufficientProvidersError",
    "NotInitializedError",
    "ObjectRef",
    "ProviderRegistry",
    "RedundancyError",
    "RedundancyLevel",
    "RedundancyNotMetError",
    "RedundancyPolicy",
    "StorageError",
    "StorageLocation",
    "WriteReceipt",
]
