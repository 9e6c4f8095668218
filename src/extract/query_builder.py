"""
Query Builder - Extract Layer

Turns the user's filter choice into immutable query parameters and
serializes them (plus the pagination cursor) into request params.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Union

from src.coreutils.errors import ConfigurationError
from src.coreutils.time import since_epoch_seconds
from .schemas import FILTER_PARAM_NAMES, QueryParameters

BASE_PARAMS = {"event_type": "successful", "only_opensea": "false"}


def build_query(
    slug: Optional[str] = None,
    contract: Optional[str] = None,
    days: Optional[Union[int, float, str]] = None,
    now: Optional[datetime] = None,
) -> QueryParameters:
    """
    Build the query for one collection or contract

    Args:
        slug: Collection slug
        contract: Asset contract address
        days: Optional lookback window in days
        now: Reference time for the lookback window (defaults to now)

    Returns:
        QueryParameters: Immutable query

    Raises:
        ConfigurationError: If neither or both filters are given, or days is not numeric
    """
    if slug and contract:
        raise ConfigurationError(
            "Pass either a `--slug` or a `--contract` parameter, not both."
        )
    if slug:
        filter_kind, filter_value = "slug", slug
    elif contract:
        filter_kind, filter_value = "contract", contract
    else:
        raise ConfigurationError(
            "This script requires either a `--slug` or `--contract` parameter to be passed."
        )

    since = None
    if days not in (None, ""):
        try:
            lookback = float(days)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid number of days: {days!r}") from e
        # a zero lookback means "no window", same as leaving it out
        if lookback:
            since = since_epoch_seconds(lookback, now)

    return QueryParameters(
        filter_kind=filter_kind,
        filter_value=filter_value,
        since_epoch_seconds=since,
    )


def to_request_params(query: QueryParameters, cursor: Optional[str] = None) -> Dict[str, Any]:
    """Request params for one page; the cursor is only sent when non-empty"""
    params: Dict[str, Any] = dict(BASE_PARAMS)
    params[FILTER_PARAM_NAMES[query.filter_kind]] = query.filter_value

    if query.since_epoch_seconds:
        params["occurred_after"] = query.since_epoch_seconds
    if cursor:
        params["cursor"] = cursor

    return params
