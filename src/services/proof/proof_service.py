"""
Payment Proof Service

Handles the transfer receipt a resident attaches to a dues payment.

This service handles:
1. Size and format checks
2. Decoding check (is this really an image / a PDF?)
3. Upload through the payment storage backend
4. Turning Google Drive links into embeddable thumbnails

CRITICAL: We do NOT upload files we cannot open.
A receipt the treasurer cannot view is worse than no receipt, so
unreadable files are rejected and the resident is asked to pick again.
"""

import re
from datetime import datetime
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field

from src.config import AppSettings, get_settings
from src.services.storage.interface import PaymentStorageInterface


MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "pdf": "application/pdf",
}

_DRIVE_ID_PATTERNS = (
    re.compile(r"[?&]id=([A-Za-z0-9_-]+)"),
    re.compile(r"/file/d/([A-Za-z0-9_-]+)"),
)


class ProofValidationError(Exception):
    """The attached file cannot be used as a payment proof."""
    pass


class ProofUpload(BaseModel):
    """A proof file as received from the upload widget."""

    file_name: str = Field(..., min_length=1)
    data: bytes = Field(..., repr=False)
    mime_type: Optional[str] = Field(
        default=None,
        description="MIME type reported by the browser, if any"
    )

    @property
    def extension(self) -> str:
        if "." not in self.file_name:
            return ""
        return self.file_name.rsplit(".", 1)[-1].lower()

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class ProofService:
    """
    Validates payment proofs and stores them through the payment backend.

    The backend decides where the file ends up: Google Drive for the
    remote store, an inline data URL for the local demo store.
    """

    def __init__(
        self,
        storage: PaymentStorageInterface,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().app

    def _check_image(self, data: bytes) -> None:
        """
        Make sure Pillow can open the image.

        DESIGN DECISION: verify() only reads the headers and structure,
        which catches truncated and mislabeled files without decoding
        every pixel of a large phone photo.
        """
        try:
            with Image.open(BytesIO(data)) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ProofValidationError(f"File is not a readable image: {e}") from e

    def validate(self, upload: ProofUpload) -> str:
        """
        Check an upload and return the MIME type to store it with.

        Raises:
            ProofValidationError: If the file is empty, too large,
                of an unsupported type or cannot be opened
        """
        if upload.size_bytes == 0:
            raise ProofValidationError("File is empty")

        if upload.size_bytes > self._settings.max_upload_size_bytes:
            raise ProofValidationError(
                f"File is too large ({upload.size_bytes / (1024 * 1024):.1f} MB). "
                f"Maximum is {self._settings.max_upload_size_mb} MB."
            )

        extension = upload.extension
        if extension not in self._settings.supported_formats_list:
            raise ProofValidationError(
                f"Unsupported file type '.{extension}'. "
                f"Use one of: {', '.join(self._settings.supported_formats_list)}"
            )

        if extension == "pdf":
            if not upload.data.startswith(b"%PDF-"):
                raise ProofValidationError("File is not a valid PDF")
        else:
            self._check_image(upload.data)

        return MIME_TYPES.get(extension) or upload.mime_type or "application/octet-stream"

    async def upload(
        self,
        upload: ProofUpload,
        house_id: str,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Validate and store a proof.

        Returns:
            URL where the proof can be viewed
        """
        mime_type = self.validate(upload)
        stamp = int((now or datetime.utcnow()).timestamp() * 1000)
        file_name = f"secure-{house_id.replace('/', '-')}-{stamp}"
        return await self._storage.store_proof(upload.data, mime_type, file_name)


def get_embed_url(url: Optional[str]) -> str:
    """
    Turn a Google Drive share link into an embeddable thumbnail URL.

    Other links (and data URLs) are returned unchanged.
    """
    if not url:
        return ""
    if "drive.google.com" not in url:
        return url
    for pattern in _DRIVE_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return f"https://drive.google.com/thumbnail?id={match.group(1)}&sz=w1000"
    return url


def is_pdf_link(url: Optional[str]) -> bool:
    """True for links the UI should offer as a download rather than an image."""
    if not url:
        return False
    return url.startswith("data:application/pdf") or url.lower().endswith(".pdf")
