"""
Event Normalizer - Transform Layer

Turns one raw, untrusted sale event into a (date, price) pair priced in the
reference currency. Upstream data is occasionally malformed, so failures are
reported per event and the caller decides to skip them.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional

from src.coreutils.errors import MalformedEventError


@dataclass(frozen=True)
class NormalizedSale:
    date: str
    price: float


@dataclass(frozen=True)
class NormalizeResult:
    """Outcome of normalizing one event: either a sale or the reason it was skipped"""

    sale: Optional[NormalizedSale] = None
    error: Optional[MalformedEventError] = None

    @property
    def ok(self) -> bool:
        return self.sale is not None


def _number(value: Any, field_name: str) -> float:
    if value is None or isinstance(value, bool):
        raise MalformedEventError(f"Missing or invalid {field_name}: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise MalformedEventError(f"Non-numeric {field_name}: {value!r}") from e
    if not math.isfinite(number):
        raise MalformedEventError(f"Non-finite {field_name}: {value!r}")
    return number


def _decimals(value: Any) -> int:
    number = _number(value, "payment_token.decimals")
    if not number.is_integer():
        raise MalformedEventError(f"Non-integer payment_token.decimals: {value!r}")
    return int(number)


def normalize_event(event: Any) -> NormalizedSale:
    """
    Normalize a raw sale event

    price = (total_price / 10^decimals) * eth_price
    date  = event_timestamp up to the "T" separator

    Args:
        event: Raw event record from the events API

    Returns:
        NormalizedSale: Sale date and price in the reference currency

    Raises:
        MalformedEventError: If a required field is absent or not numeric
    """
    if not isinstance(event, dict):
        raise MalformedEventError(f"Event is not an object: {type(event).__name__}")

    payment_token = event.get("payment_token")
    if not isinstance(payment_token, dict):
        raise MalformedEventError("Event has no payment_token")

    timestamp = event.get("event_timestamp")
    if not isinstance(timestamp, str) or not timestamp:
        raise MalformedEventError(f"Missing or invalid event_timestamp: {timestamp!r}")
    date = timestamp.split("T")[0]

    total_price = _number(event.get("total_price"), "total_price")
    decimals = _decimals(payment_token.get("decimals"))
    eth_price = _number(payment_token.get("eth_price"), "payment_token.eth_price")

    try:
        price = (total_price / 10**decimals) * eth_price
    except OverflowError as e:
        raise MalformedEventError(f"Price out of range: {total_price} / 10^{decimals}") from e
    if not math.isfinite(price):
        raise MalformedEventError(f"Price out of range: {price}")
    return NormalizedSale(date=date, price=price)


def try_normalize(event: Any) -> NormalizeResult:
    """Normalize an event, capturing a MalformedEventError instead of raising it"""
    try:
        return NormalizeResult(sale=normalize_event(event))
    except MalformedEventError as e:
        return NormalizeResult(error=e)
