import hmac
import secrets
import string

from fastapi import HTTPException, Query, status
from loguru import logger
from passlib.context import CryptContext

from src.config.settings import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)

# URL-safe alphabet, matches what invite links carry verbatim
TOKEN_ALPHABET = string.ascii_letters + string.digits + "_-"


def hash_password(password: str) -> str:
    """Returns a bcrypt digest of the plaintext password."""
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str | None) -> bool:
    """Checks a plaintext password against a stored digest.

    Args:
        password: The plaintext candidate.
        hashed_password: The stored digest, or None for accounts without a password.

    Returns:
        bool: True if the password matches.
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(password, hashed_password)
    except ValueError as e:
        logger.warning(f"Unreadable password hash encountered: {e}")
        return False


def generate_invite_token(length: int | None = None) -> str:
    """Generates a high-entropy, URL-safe invitation token."""
    size = length or settings.INVITE_TOKEN_LENGTH
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(size))


def verify_setup_key(key: str | None = Query(default=None)) -> None:
    """Guards the bootstrap endpoint behind the configured setup key."""
    if not settings.SETUP_KEY:
        logger.error("SETUP_KEY is null. Failing closed.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Configuration missing.")

    if not key or not hmac.compare_digest(key.encode("utf-8"), settings.SETUP_KEY.encode("utf-8")):
        logger.warning("Rejected bootstrap call: invalid setup key.")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid key")
