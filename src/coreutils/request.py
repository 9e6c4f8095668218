from urllib3.util.retry import Retry
import requests
from requests.adapters import HTTPAdapter
from typing import Dict, Optional


# Only connection establishment is retried here. Throttling and backoff
# on failed pages belong to the ingest loop.
DEFAULT_RETRY_STRATEGY = Retry(
    total=2,
    connect=2,
    read=0,
    status=0,
    backoff_factor=0.5,
    raise_on_status=False,
)


def new_session(headers: Optional[Dict[str, str]] = None) -> requests.Session:
    """Create a new requests session with retry strategy and default headers"""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=DEFAULT_RETRY_STRATEGY)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update(
        {"User-Agent": "opensea-sales-report/1.0", "Accept": "application/json"}
    )
    if headers:
        session.headers.update(headers)

    return session
