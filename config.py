"""
Application configuration, read from the environment.
"""
import os

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", "8000"))


class ConfigurationError(RuntimeError):
    pass


def get_secret_key() -> str:
    """Token signing key. There is no default: an unset key is a deployment error."""
    key = os.getenv("JWT_SECRET")
    if not key:
        raise ConfigurationError("JWT_SECRET must be set before the API can issue or verify tokens")
    return key


def get_webhook_secret() -> str | None:
    return os.getenv("WEBHOOK_SECRET") or None
