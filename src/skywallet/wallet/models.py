"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from pydantic import BaseModel, Field

from skywallet.units import ZERO


class Address(BaseModel):
    address: str = Field(..., min_length=1)
    # Hardware addresses are confirmed once shown on the device screen
    confirmed: bool = True


class Wallet(BaseModel):
    """
    A software wallet (stored and signed by the node) or a hardware wallet
    (addresses cached locally, signing done on the device).

    For hardware wallets the derivation index of an address is its position
    in `addresses`.
    """

    id: str = ""  # node wallet filename, empty for hardware wallets
    label: str = ""
    addresses: list[Address] = Field(default_factory=list)
    is_hardware: bool = False
    encrypted: bool = False
    has_security_warning: bool = False
    stop_showing_warning: bool = False

    @property
    def first_address(self) -> str | None:
        return self.addresses[0].address if self.addresses else None

    def address_strings(self) -> list[str]:
        return [a.address for a in self.addresses]

    def address_index_map(self) -> dict[str, int]:
        """Map address -> derivation index."""
        return {a.address: i for i, a in enumerate(self.addresses)}

    def owns(self, address: str) -> bool:
        return any(a.address == address for a in self.addresses)


class AddressDescriptor(BaseModel):
    address: str
    confirmed: bool = False


class HardwareWalletDescriptor(BaseModel):
    """Persisted form of a hardware wallet (camelCase on disk)."""

    label: str
    addresses: list[AddressDescriptor] = Field(default_factory=list)
    has_security_warning: bool = Field(default=False, alias="hasSecurityWarning")
    stop_showing_warning: bool = Field(default=False, alias="stopShowingWarning")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_wallet(cls, wallet: Wallet) -> HardwareWalletDescriptor:
        return cls(
            label=wallet.label,
            addresses=[
                AddressDescriptor(address=a.address, confirmed=a.confirmed)
                for a in wallet.addresses
            ],
            has_security_warning=wallet.has_security_warning,
            stop_showing_warning=wallet.stop_showing_warning,
        )

    def to_wallet(self) -> Wallet:
        return Wallet(
            label=self.label,
            addresses=[Address(address=a.address, confirmed=a.confirmed) for a in self.addresses],
            is_hardware=True,
            encrypted=False,
            has_security_warning=self.has_security_warning,
            stop_showing_warning=self.stop_showing_warning,
        )


@dataclass
class AddressBalance:
    coins: Decimal = ZERO
    hours: Decimal = ZERO


@dataclass
class BalanceSnapshot:
    """Balance of all owned addresses at one point in time"""

    coins: Decimal = ZERO
    hours: Decimal = ZERO
    predicted_coins: Decimal = ZERO
    predicted_hours: Decimal = ZERO
    addresses: dict[str, AddressBalance] = field(default_factory=dict)
