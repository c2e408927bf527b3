"""
conftest.py - Shared pytest fixtures for engine tests

Provides common fixtures used across unit, conformance and functional tests:
- Fake token and transfer capabilities
- Engines (empty, and with one indebted account)
- The WETH price feed, for moving the market
"""

import pytest

from pegledger import EngineParameters

from tests.fakes import FakeToken, FakeTransfer, make_engine, units


@pytest.fixture
def token():
    return FakeToken()


@pytest.fixture
def transfer():
    return FakeTransfer()


@pytest.fixture
def parameters():
    return EngineParameters()


@pytest.fixture
def engine(token, transfer):
    """Empty engine, WETH at $1000 and WBTC at $20000."""
    return make_engine(token=token, transfer=transfer)


@pytest.fixture
def eth_feed(engine):
    return engine.get_price_feed("WETH")


@pytest.fixture
def indebted_engine(engine):
    """alice: 10 WETH deposited, 4000 minted (health factor 1.25)."""
    engine.deposit_and_mint("alice", "WETH", units(10), units(4000))
    return engine
