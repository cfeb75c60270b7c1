"""Security utilities: token encryption and webhook signature checks."""

import base64
import hashlib
import hmac

from cryptography.fernet import Fernet

from app.core.config import get_settings

# ── Field-level encryption (Fernet) ──────────────────────────

def _get_fernet() -> Fernet:
    settings = get_settings()
    if not settings.encryption_key:
        raise RuntimeError("ENCRYPTION_KEY is not configured")
    return Fernet(settings.encryption_key.encode())


def encrypt_value(plaintext: str) -> str:
    """Encrypt a string value. Returns base64 ciphertext."""
    return _get_fernet().encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    """Decrypt a Fernet-encrypted value."""
    return _get_fernet().decrypt(ciphertext.encode()).decode()


# ── Shopify webhooks ─────────────────────────────────────────

def sign_webhook_body(body: bytes, secret: str) -> str:
    """Base64 HMAC-SHA256 of the raw request body, as Shopify sends it."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def verify_webhook(body: bytes, signature: str | None, secret: str) -> bool:
    """Constant-time check of the X-Shopify-Hmac-Sha256 header.

    An unset secret rejects everything.
    """
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign_webhook_body(body, secret), signature)


def verify_internal_token(presented: str, expected: str) -> bool:
    if not expected:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())
