from __future__ import annotations

import base64
import hashlib
import secrets

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app
from passlib.context import CryptContext


pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)

# No 0/O or 1/I, join codes get read aloud.
JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
JOIN_CODE_LENGTH = 8


def generate_join_code(length: int = JOIN_CODE_LENGTH) -> str:
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


def generate_secret(num_bytes: int = 18) -> str:
    """Admin secrets and participant access keys."""
    return secrets.token_urlsafe(num_bytes)


def hash_secret(secret: str) -> str:
    return pwd_context.hash(secret)


def verify_secret(secret: str, stored_hash: str) -> bool:
    if not secret or not stored_hash:
        return False
    return pwd_context.verify(secret, stored_hash)


# ---------------------------------------------------------------------------
# Assignment encryption-at-rest
#
# The receiver of each assignment is encrypted before it is persisted, so the
# draw cannot be read off the database.
#
# NOTE: anyone holding ASSIGNMENT_ENC_KEY or SECRET_KEY can still decrypt.
# ---------------------------------------------------------------------------


def _assignment_fernet() -> Fernet:
    """Returns a Fernet instance keyed by ASSIGNMENT_ENC_KEY or derived from SECRET_KEY."""
    explicit = (current_app.config.get("ASSIGNMENT_ENC_KEY") or "").strip()
    if explicit:
        # urlsafe base64-encoded 32-byte key
        return Fernet(explicit.encode("utf-8"))

    # Stable across restarts as long as SECRET_KEY is.
    secret = (current_app.config.get("SECRET_KEY") or "").encode("utf-8")
    digest = hashlib.sha256(b"giftdraw-assignments|" + secret).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_receiver(receiver_id: int) -> str:
    token = _assignment_fernet().encrypt(str(int(receiver_id)).encode("utf-8"))
    return token.decode("utf-8")


def decrypt_receiver(token: str) -> int:
    """Raises ValueError when the token is not ours or is corrupt."""
    try:
        raw = _assignment_fernet().decrypt(token.encode("utf-8"))
        return int(raw.decode("utf-8"))
    except (InvalidToken, ValueError, TypeError) as e:
        raise ValueError("Invalid assignment token") from e
