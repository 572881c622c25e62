"""Payment proof services package."""

from src.services.proof.proof_service import (
    ProofService,
    ProofUpload,
    ProofValidationError,
    get_embed_url,
    is_pdf_link,
)

__all__ = [
    "ProofService",
    "ProofUpload",
    "ProofValidationError",
    "get_embed_url",
    "is_pdf_link",
]
