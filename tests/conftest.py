"""
Shared fixtures: raw sale events shaped like OpenSea v1 `asset_events`.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest


def make_event(
    date="2023-01-01",
    total_price="1000000000000000000",
    decimals=18,
    eth_price="1",
    collection_name="Test Collection",
):
    """Raw sale event with the nested fields the normalizer reads"""
    return {
        "event_type": "successful",
        "event_timestamp": f"{date}T12:34:56",
        "total_price": total_price,
        "payment_token": {"symbol": "ETH", "decimals": decimals, "eth_price": eth_price},
        "asset": {"asset_contract": {"name": collection_name}},
    }


@pytest.fixture
def sale_event():
    return make_event
