"""
Test configuration and fixtures.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from skywallet.wallet.models import Wallet
from tests.helpers import make_address, make_wallet


@pytest.fixture
def hw_addresses() -> list[str]:
    return [make_address(i) for i in range(3)]


@pytest.fixture
def external_address() -> str:
    return make_address(1000)


@pytest.fixture
def hw_wallet(hw_addresses: list[str]) -> Wallet:
    return make_wallet(hw_addresses, is_hardware=True, label="Device")


@pytest.fixture
def sw_wallet() -> Wallet:
    return make_wallet([make_address(100), make_address(101)], label="savings")


@pytest.fixture
def mock_backend():
    """Node backend double with every call mocked."""
    backend = MagicMock()
    backend.create_transaction = AsyncMock()
    backend.create_wallet_transaction = AsyncMock()
    backend.sign_transaction = AsyncMock()
    backend.get_transactions = AsyncMock(return_value=[])
    backend.inject_transaction = AsyncMock(return_value="txid123")
    backend.get_wallets = AsyncMock(return_value=[])
    backend.get_balance = AsyncMock()
    backend.rename_wallet = AsyncMock()
    backend.close = AsyncMock()
    return backend


@pytest.fixture
def mock_note_store():
    store = MagicMock()
    store.get = AsyncMock(return_value={})
    store.put = AsyncMock()
    store.close = AsyncMock()
    return store
