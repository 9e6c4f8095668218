from dotenv import load_dotenv
import os

from src.coreutils.errors import ConfigurationError

load_dotenv()  # take environment variables from .env


def env_get(key: str, default: str | None = None) -> str | None:
    """Get environment variable or return default."""
    return os.getenv(key, default)


def env_float(key: str, default: float) -> float:
    """Get environment variable as float, falling back to default when unset or blank."""
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Environment variable {key} must be numeric, got {value!r}"
        ) from e
