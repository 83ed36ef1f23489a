"""
Field-level encryption for stored provider credentials

AES-256-GCM with a fresh 16-byte nonce per value. Each encrypted field is
stored as a single envelope string:

    <nonce_hex>:<auth_tag_hex>:<ciphertext_hex>
"""

import logging
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Iterable, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from . import config
from .errors import AuthenticationFailure, ConfigurationError, MalformedEnvelope

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
NONCE_LENGTH = 16
TAG_LENGTH = 16

_HEX_RE = re.compile(r"(?:[0-9a-fA-F]{2})*")
_ENVELOPE_RE = re.compile(
    rf"[0-9a-fA-F]{{{NONCE_LENGTH * 2}}}:[0-9a-fA-F]{{{TAG_LENGTH * 2}}}:(?:[0-9a-fA-F]{{2}})*"
)


def looks_like_envelope(value: Any) -> bool:
    """True if value has the nonce:tag:ciphertext hex shape (does not decrypt)"""
    return isinstance(value, str) and bool(_ENVELOPE_RE.fullmatch(value))


@dataclass(frozen=True)
class Decrypted:
    value: str


@dataclass(frozen=True)
class Failed:
    reason: str


FieldResult = Union[Decrypted, Failed]


@dataclass
class FieldDecryption:
    """Per-field outcome of FieldCipher.decrypt_fields.

    ``values`` is the input object with every successfully decrypted field
    replaced by its plaintext; fields that failed keep their stored value.
    """

    values: dict[str, Any]
    results: dict[str, FieldResult] = field(default_factory=dict)

    @property
    def failures(self) -> dict[str, str]:
        return {name: r.reason for name, r in self.results.items() if isinstance(r, Failed)}

    @property
    def ok(self) -> bool:
        return not self.failures


class FieldCipher:
    """Encrypts and decrypts individual credential strings"""

    def __init__(self, key: bytes):
        if len(key) != KEY_LENGTH:
            raise ConfigurationError(
                f"Encryption key must be exactly {KEY_LENGTH} bytes (got {len(key)})"
            )
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_LENGTH)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        # cryptography appends the tag to the ciphertext
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{nonce.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, envelope: str) -> str:
        if not isinstance(envelope, str):
            raise MalformedEnvelope("Envelope must be a string")

        parts = envelope.split(":")
        if len(parts) != 3:
            raise MalformedEnvelope(f"Expected 3 envelope components, got {len(parts)}")

        # bytes.fromhex skips whitespace, so check the digits first
        for part in parts:
            if not _HEX_RE.fullmatch(part):
                raise MalformedEnvelope("Envelope component is not valid hex")
        nonce, tag, ciphertext = (bytes.fromhex(part) for part in parts)

        if len(nonce) != NONCE_LENGTH:
            raise MalformedEnvelope(f"Invalid nonce length {len(nonce)} (expected {NONCE_LENGTH})")
        if len(tag) != TAG_LENGTH:
            raise MalformedEnvelope(f"Invalid tag length {len(tag)} (expected {TAG_LENGTH})")

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise AuthenticationFailure("Authentication tag check failed") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEnvelope("Decrypted value is not UTF-8") from e

    def encrypt_fields(self, obj: dict[str, Any], fields: Iterable[str]) -> dict[str, Any]:
        """Return a copy of obj with the named fields encrypted; empty values are left alone"""
        result = dict(obj)
        for name in fields:
            value = result.get(name)
            if value:
                result[name] = self.encrypt(str(value))
        return result

    def decrypt_fields(self, obj: dict[str, Any], fields: Iterable[str]) -> FieldDecryption:
        """Decrypt the named fields without raising on a per-field failure.

        Failed fields keep their stored value in ``values`` and are reported
        as ``Failed`` in ``results``; callers decide if a partial object is usable.
        """
        values = dict(obj)
        results: dict[str, FieldResult] = {}

        for name in fields:
            value = values.get(name)
            if not value:
                continue
            try:
                plaintext = self.decrypt(value)
            except (MalformedEnvelope, AuthenticationFailure) as e:
                logger.error(f"❌ Failed to decrypt field {name}: {type(e).__name__}: {e}")
                results[name] = Failed(reason=f"{type(e).__name__}: {e}")
                continue
            values[name] = plaintext
            results[name] = Decrypted(value=plaintext)

        return FieldDecryption(values=values, results=results)


def parse_key(raw: Optional[str]) -> bytes:
    """Parse a 64-char hex key string into 32 key bytes"""
    if not raw or not raw.strip():
        raise ConfigurationError(
            "ENCRYPTION_KEY is not set. Refusing to start: stored credentials would be unreadable."
        )
    try:
        key = bytes.fromhex(raw.strip())
    except ValueError as e:
        raise ConfigurationError("ENCRYPTION_KEY must be hex encoded") from e
    if len(key) != KEY_LENGTH:
        raise ConfigurationError(
            f"ENCRYPTION_KEY has invalid length {len(key)} bytes (expected {KEY_LENGTH})"
        )
    return key


@lru_cache(maxsize=1)
def get_field_cipher() -> FieldCipher:
    """Process-wide cipher built from ENCRYPTION_KEY; fails fast when it is missing"""
    cipher = FieldCipher(parse_key(config.ENCRYPTION_KEY))
    logger.info("🔐 Field cipher initialized")
    return cipher
