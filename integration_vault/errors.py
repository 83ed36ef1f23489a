"""
Error taxonomy for the credential vault and webhook boundary.

Services raise these; routers translate them to HTTP responses.
"""

from typing import Optional


class VaultError(Exception):
    """Base class for all integration vault errors"""


class ConfigurationError(VaultError):
    """Raised when required process configuration is missing or invalid"""


class CipherError(VaultError):
    """Base class for field cipher failures"""


class MalformedEnvelope(CipherError):
    """Raised when a ciphertext envelope is not nonce:tag:ciphertext hex"""


class AuthenticationFailure(CipherError):
    """Raised when the GCM tag check fails (tampered data or wrong key)"""


class NotConfigured(VaultError):
    """Raised when a tenant has no active configuration for a provider"""

    def __init__(self, tenant_id: int, provider: str):
        self.tenant_id = tenant_id
        self.provider = provider
        super().__init__(f"{provider} is not configured for tenant {tenant_id}")


class DecryptionFailure(VaultError):
    """Raised when a configured credential field cannot be decrypted"""

    def __init__(self, provider: str, field: str, reason: str):
        self.provider = provider
        self.field = field
        self.reason = reason
        super().__init__(f"Could not decrypt {provider}.{field}: {reason}")


class InvalidCredentials(VaultError):
    """Raised when submitted credential fields fail validation"""


class RoutingKeyInUse(VaultError):
    """Raised when a provider routing identifier already belongs to another tenant"""


class WebhookVerificationError(VaultError):
    """Raised when an inbound webhook fails authenticity checks"""

    def __init__(self, reason: str, status_code: int = 403):
        self.reason = reason
        self.status_code = status_code
        super().__init__(reason)


class PersistenceError(VaultError):
    """Raised when a storage operation fails"""


class RaceConditionConflict(PersistenceError):
    """Raised when an upserted row cannot be re-read after an insert conflict"""


class ProviderError(VaultError):
    """Raised when an outbound provider call fails; message is the provider's own"""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class RecordNotFound(VaultError):
    """Raised when a tenant-scoped record does not exist"""
