"""
Extract Layer Schemas

Structures for data as it comes from the OpenSea events API.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

FilterKind = Literal["slug", "contract"]

# Query parameter names used for each filter kind
FILTER_PARAM_NAMES: Dict[str, str] = {
    "slug": "collection_slug",
    "contract": "asset_contract_address",
}


@dataclass(frozen=True)
class QueryParameters:
    """Immutable description of which events to fetch"""

    filter_kind: FilterKind
    filter_value: str
    since_epoch_seconds: Optional[int] = None


@dataclass
class PageResponse:
    """One decoded events page; consumed once by the ingest loop"""

    next_cursor: Optional[str]
    events: List[Dict[str, Any]] = field(default_factory=list)
    throttle_detail: Optional[str] = None
