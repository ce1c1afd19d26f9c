"""
Base node backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from skywallet.models import (
    Destination,
    HistoryTransaction,
    HoursSelection,
    SignedTransaction,
    UnsignedTransaction,
)
from skywallet.wallet.models import BalanceSnapshot, Wallet


class TransactionRequest(BaseModel):
    """Parameters for a remote transaction build."""

    hours_selection: HoursSelection = Field(default_factory=HoursSelection)
    wallet_id: str | None = None
    password: str | None = None
    addresses: list[str] | None = None
    unspents: list[str] | None = None
    to: list[Destination]
    change_address: str | None = None
    unsigned: bool = False

    def to_api(self, include_unsigned: bool) -> dict[str, Any]:
        params: dict[str, Any] = {
            "hours_selection": self.hours_selection.to_api(),
            "wallet_id": self.wallet_id,
            "password": self.password,
            "addresses": self.addresses,
            "unspents": self.unspents,
            "to": [d.to_api() for d in self.to],
            "change_address": self.change_address,
        }
        if include_unsigned:
            params["unsigned"] = self.unsigned
        return params


class NodeBackend(ABC):
    """
    Abstract node API.
    The node selects unspent outputs, allocates hours, stores software
    wallets and signs for them.
    """

    @abstractmethod
    async def create_transaction(self, request: TransactionRequest) -> UnsignedTransaction:
        """Build a transaction with the newer endpoint (always fully described, unsigned)"""

    @abstractmethod
    async def create_wallet_transaction(
        self, request: TransactionRequest
    ) -> UnsignedTransaction | SignedTransaction:
        """Build with the legacy wallet endpoint, which signs unless `unsigned` is set"""

    @abstractmethod
    async def sign_transaction(
        self, wallet_id: str, password: str | None, encoded_transaction: str
    ) -> SignedTransaction:
        """Sign an encoded transaction with a software wallet stored on the node"""

    @abstractmethod
    async def get_transactions(self, addresses: list[str]) -> list[HistoryTransaction]:
        """Get every transaction touching the given addresses"""

    @abstractmethod
    async def inject_transaction(self, encoded_transaction: str) -> str:
        """Broadcast a transaction, returns its id"""

    @abstractmethod
    async def get_wallets(self) -> list[Wallet]:
        """Get the software wallets stored on the node"""

    @abstractmethod
    async def get_balance(self, addresses: list[str]) -> BalanceSnapshot:
        """Get confirmed and predicted balance of the given addresses"""

    @abstractmethod
    async def rename_wallet(self, wallet_id: str, label: str) -> None:
        """Change a software wallet label"""

    async def close(self) -> None:
        """Close backend connection"""
        pass
