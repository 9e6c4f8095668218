"""
OpenSea Events API Client - Pure I/O Operations

Fetches one page of sale events and classifies the response.
Throttling is reported through the `detail` field of the body rather than
a structured status, so the HTTP status code is not used for decisions.
"""

import re
import time
import logging
from typing import Any, Optional

import requests

from src.coreutils.config import ReportConfig
from src.coreutils.errors import (
    MalformedPageError,
    ThrottleCondition,
    TransientFetchError,
)
from src.coreutils.request import new_session
from .query_builder import to_request_params
from .schemas import PageResponse, QueryParameters

logger = logging.getLogger(__name__)

THROTTLED_REGEX = re.compile(
    r"Request was throttled\.( Expected available in ([0-9]*) second)?"
)


def match_throttle(detail: Any) -> Optional[ThrottleCondition]:
    """
    Check a response detail message for the rate-limit marker

    Args:
        detail: Free-text `detail` value from the response body

    Returns:
        Optional[ThrottleCondition]: Throttle with the suggested wait, if any
    """
    if not isinstance(detail, str):
        return None
    match = THROTTLED_REGEX.search(detail)
    if not match:
        return None
    seconds = match.group(2)
    return ThrottleCondition(detail, int(seconds) if seconds else None)


def parse_page(body: Any) -> PageResponse:
    """
    Decode a JSON body into a PageResponse

    Raises:
        MalformedPageError: If the body is not an events page and not a throttle message
    """
    if not isinstance(body, dict):
        raise MalformedPageError(f"Unexpected response body type: {type(body).__name__}")

    detail = body.get("detail")
    if match_throttle(detail):
        return PageResponse(next_cursor=None, events=[], throttle_detail=detail)

    events = body.get("asset_events")
    if not isinstance(events, list):
        raise MalformedPageError(
            f"Response has no asset_events list (detail: {detail!r})"
        )

    return PageResponse(next_cursor=body.get("next") or None, events=events)


class OpenSeaEventsClient:
    """Pure API client for the OpenSea events endpoint"""

    def __init__(self, config: ReportConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or new_session(config.auth_headers())

    def fetch_page(self, query: QueryParameters, cursor: Optional[str] = None) -> PageResponse:
        """
        Fetch a single events page

        Args:
            query: Query to fetch
            cursor: Continuation cursor from the previous page

        Returns:
            PageResponse: Decoded page (may carry a throttle detail)

        Raises:
            TransientFetchError: On transport errors or non-JSON / malformed bodies
        """
        params = to_request_params(query, cursor)
        logger.debug(f"Fetching {self.config.base_url} with params {params}")
        start_time = time.time()

        try:
            response = self.session.get(
                self.config.base_url,
                params=params,
                headers=self.config.auth_headers(),
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransientFetchError(f"HTTP request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise TransientFetchError(
                f"Invalid JSON response (status={response.status_code}): {e}"
            ) from e

        elapsed = time.time() - start_time
        logger.debug(f"Fetched page in {elapsed:.2f} seconds (status={response.status_code})")
        return parse_page(body)
