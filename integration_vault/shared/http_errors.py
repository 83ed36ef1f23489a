"""Translate vault errors into HTTP responses"""

import logging

from fastapi import HTTPException

from ..errors import (
    DecryptionFailure,
    InvalidCredentials,
    NotConfigured,
    PersistenceError,
    ProviderError,
    RecordNotFound,
    RoutingKeyInUse,
    VaultError,
)

logger = logging.getLogger(__name__)


def to_http_exception(e: VaultError) -> HTTPException:
    if isinstance(e, NotConfigured):
        return HTTPException(status_code=404, detail=f"{e.provider} is not configured")
    if isinstance(e, RecordNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, RoutingKeyInUse):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, InvalidCredentials):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, ProviderError):
        return HTTPException(
            status_code=502,
            detail={
                "message": f"The {e.provider} request failed",
                "provider_error": e.message,
            },
        )
    if isinstance(e, DecryptionFailure):
        logger.error(f"❌ {e}")
        return HTTPException(
            status_code=500,
            detail=f"Stored {e.provider} credentials could not be read. Please save them again.",
        )
    if isinstance(e, PersistenceError):
        logger.error(f"❌ Storage error: {e}")
        return HTTPException(status_code=500, detail="Failed to save changes. Please try again.")
    logger.error(f"❌ Unexpected vault error: {e}")
    return HTTPException(status_code=500, detail="Internal server error")
