"""
Exceptions raised by the catalog store and its storage layer.

CatalogError
├── QuotaExceededError   durable write rejected for size
├── StorageWriteError    durable file could not be written
├── InvalidTransitionError  review status change not allowed
├── NotApprovedError     promotion to the shop of a submission that is not approved
└── DecodeError          image payload could not be decoded (never leaves the codec)
"""

from typing import Optional


class CatalogError(Exception):
    """Base class for catalog store errors."""


class QuotaExceededError(CatalogError):
    def __init__(self, key: str, requested: int, available: int):
        self.key = key
        self.requested = requested
        self.available = available
        super().__init__(
            f"Writing '{key}' needs {requested} units but only {available} are available"
        )


class InvalidTransitionError(CatalogError):
    def __init__(self, kind: str, entity_id: str, current: str, requested: str):
        self.kind = kind
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"{kind} {entity_id} cannot move from '{current}' to '{requested}'"
        )


class DecodeError(CatalogError):
    def __init__(self, reason: str, cause: Optional[BaseException] = None):
        self.reason = reason
        self.cause = cause
        super().__init__(reason)


class StorageWriteError(CatalogError):
    def __init__(self, key: str, cause: OSError):
        self.key = key
        self.cause = cause
        super().__init__(f"Could not write '{key}' to the storage file: {cause}")


class NotApprovedError(CatalogError):
    def __init__(self, entity_id: str, status: str):
        self.entity_id = entity_id
        self.status = status
        super().__init__(
            f"submission {entity_id} is '{status}'; only approved submissions can be added to the shop"
        )
