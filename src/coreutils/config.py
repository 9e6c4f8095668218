"""
Run configuration, resolved once at startup and passed explicitly to the
components that need it.
"""

from dataclasses import dataclass
from typing import Dict

from src.coreutils.env import env_get, env_float

OPENSEA_EVENTS_ENDPOINT = "https://api.opensea.io/api/v1/events"
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_TIMEOUT = 30.0
DEFAULT_PROGRESS_INTERVAL = 10.0  # seconds between progress log lines


@dataclass(frozen=True)
class ReportConfig:
    api_key: str
    base_url: str = OPENSEA_EVENTS_ENDPOINT
    timeout: float = DEFAULT_TIMEOUT
    output_dir: str = DEFAULT_OUTPUT_DIR
    progress_interval: float = DEFAULT_PROGRESS_INTERVAL

    def auth_headers(self) -> Dict[str, str]:
        """Static credential header sent with every events request"""
        return {"X-API-KEY": self.api_key}


def load_config(output_dir: str | None = None) -> ReportConfig:
    """
    Build the run configuration from the environment

    Args:
        output_dir: Optional override for the report directory (CLI flag)

    Returns:
        ReportConfig: Immutable configuration for this run
    """
    return ReportConfig(
        # a missing key is sent as the literal "None", the API then answers with a detail message
        api_key=str(env_get("OPENSEA_API_KEY")),
        base_url=env_get("OPENSEA_EVENTS_URL", OPENSEA_EVENTS_ENDPOINT),
        timeout=env_float("OPENSEA_TIMEOUT", DEFAULT_TIMEOUT),
        output_dir=output_dir or env_get("OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
        progress_interval=env_float("PROGRESS_INTERVAL", DEFAULT_PROGRESS_INTERVAL),
    )
