import hmac
from typing import Any, Mapping

from passlib.context import CryptContext

# bcrypt_sha256 prehashes so long passwords are not truncated at 72 bytes;
# plain bcrypt is kept to verify older hashes.
bcrypt_context = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    deprecated="auto",
    bcrypt__truncate_error=False,
)


def hash_password(password: str) -> str:
    return bcrypt_context.hash(password)


def verify_user_password(user: Mapping[str, Any], password: str) -> bool:
    """Check a password against a stored user.

    Users restored from older backups may still carry a plain ``password`` field
    instead of ``passwordHash``; those are compared directly.
    """
    stored_hash = user.get("passwordHash")
    if stored_hash:
        try:
            return bcrypt_context.verify(password, stored_hash)
        except ValueError:
            return False
    legacy = user.get("password")
    if isinstance(legacy, str):
        return hmac.compare_digest(legacy.encode(), password.encode())
    return False


def set_user_password(user: dict, password: str) -> dict:
    user["passwordHash"] = hash_password(password)
    user.pop("password", None)
    return user
