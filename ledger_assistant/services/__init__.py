"""Services package."""

from ledger_assistant.services.image import (
    ImageTooSmallError,
    PreparedImage,
    ReceiptImageError,
    ReceiptImagePreparer,
    UnsupportedImageError,
)
from ledger_assistant.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Image services
    "ImageTooSmallError",
    "PreparedImage",
    "ReceiptImageError",
    "ReceiptImagePreparer",
    "UnsupportedImageError",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]
