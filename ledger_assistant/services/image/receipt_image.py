"""
Receipt Image Preparation using Pillow

Receipt photos are checked locally before they are sent to the intent
parser:
1. The bytes must decode as an image in a supported format
2. The upload must fit the size limit
3. The smallest side must be large enough for text to be legible
4. The photo is downscaled so its longest side fits the configured
   maximum, then re-encoded as JPEG

CRITICAL: We do NOT send unreadable images to the language model.
If a check fails we stop and ask the user to retake the photo.
"""

from dataclasses import dataclass
from io import BytesIO
from typing import Optional

import structlog
from PIL import Image, ImageOps, UnidentifiedImageError

from ledger_assistant.config import AppSettings, get_settings


logger = structlog.get_logger(__name__)

# Pillow format names for the extensions we accept
_FORMAT_ALIASES = {"jpg": "jpeg"}


class ReceiptImageError(Exception):
    """Base exception for receipt image problems. The message is user-facing."""
    pass


class UnsupportedImageError(ReceiptImageError):
    """The bytes are not a decodable image in a supported format."""
    pass


class ImageTooSmallError(ReceiptImageError):
    """The image is too small (in bytes or pixels) to be legible, or too large to upload."""
    pass


@dataclass(frozen=True)
class PreparedImage:
    """A receipt photo ready for the intent parser."""
    data: bytes
    mime_type: str
    width: int
    height: int


class ReceiptImagePreparer:
    """
    Validates and normalizes receipt photos.

    Flow:
    1. Reject oversize uploads before decoding
    2. Decode with Pillow and check the format
    3. Check the minimum dimension
    4. Apply EXIF orientation, downscale, re-encode as JPEG
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _supported_formats(self) -> set[str]:
        return {
            _FORMAT_ALIASES.get(fmt, fmt)
            for fmt in self._settings.supported_formats_list
        }

    def prepare(self, image_bytes: bytes) -> PreparedImage:
        """
        Check and normalize one receipt photo.

        Raises:
            UnsupportedImageError: Empty, oversize, not an image, or an unaccepted format
            ImageTooSmallError: Too small to read
        """
        if not image_bytes:
            raise UnsupportedImageError("The uploaded file is empty.")

        if len(image_bytes) > self._settings.max_upload_size_bytes:
            raise UnsupportedImageError(
                f"The photo is larger than {self._settings.max_upload_size_mb} MB. "
                "Please send a smaller one."
            )

        try:
            img = Image.open(BytesIO(image_bytes))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            logger.warning("Receipt image could not be decoded", error=str(e))
            raise UnsupportedImageError(
                "I couldn't read that file as an image. Please send a photo of the receipt."
            )

        fmt = (img.format or "").lower()
        if fmt not in self._supported_formats():
            raise UnsupportedImageError(
                f"Images of type {fmt or 'unknown'} are not supported. "
                f"Please send one of: {self._settings.supported_image_formats}."
            )

        img = ImageOps.exif_transpose(img)
        width, height = img.size

        min_side = self._settings.min_receipt_dimension_px
        if min(width, height) < min_side:
            raise ImageTooSmallError(
                f"The photo is too small to read (minimum {min_side}px on the "
                "smallest side). Please take a closer photo."
            )

        max_side = self._settings.max_receipt_dimension_px
        if max(width, height) > max_side:
            img.thumbnail((max_side, max_side))

        if img.mode != "RGB":
            img = img.convert("RGB")

        buffer = BytesIO()
        img.save(buffer, format="JPEG", quality=90)

        logger.info(
            "Receipt image prepared",
            original_size=(width, height),
            prepared_size=img.size,
            source_format=fmt,
        )

        return PreparedImage(
            data=buffer.getvalue(),
            mime_type="image/jpeg",
            width=img.size[0],
            height=img.size[1],
        )
