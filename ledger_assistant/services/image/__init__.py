"""Image processing services package."""

from ledger_assistant.services.image.receipt_image import (
    ImageTooSmallError,
    PreparedImage,
    ReceiptImageError,
    ReceiptImagePreparer,
    UnsupportedImageError,
)

__all__ = [
    "ImageTooSmallError",
    "PreparedImage",
    "ReceiptImageError",
    "ReceiptImagePreparer",
    "UnsupportedImageError",
]
