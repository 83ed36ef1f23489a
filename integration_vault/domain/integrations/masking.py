"""Display-safe projection of stored credentials. Never decrypts."""

import logging
from typing import Any, Optional

from ...encryption import looks_like_envelope
from .field_schema import ProviderSchema

logger = logging.getLogger(__name__)

MASK = "••••••••"
MIN_MASK_LENGTH = 8


def mask_credentials(credentials: dict[str, Any], schema: Optional[ProviderSchema] = None) -> dict:
    """
    Replace secret values with a fixed marker.

    Envelope-shaped values longer than MIN_MASK_LENGTH are masked. A field the
    schema declares sensitive is masked even when it holds legacy plaintext;
    fields the schema does not know are classified by shape alone.
    """
    masked = {}
    for name, value in credentials.items():
        declared = schema.is_sensitive(name) if schema else None

        if isinstance(value, str) and len(value) > MIN_MASK_LENGTH and looks_like_envelope(value):
            masked[name] = MASK
        elif declared and value not in (None, ""):
            logger.warning(f"⚠️ Sensitive field {name} is not stored as ciphertext; masking anyway")
            masked[name] = MASK
        else:
            masked[name] = value
    return masked
