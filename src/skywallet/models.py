"""
Transaction and history data models using Pydantic for validation and serialization.

Coin and hours amounts are Decimal. Floats are rejected at parse time.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, BeforeValidator, Field, model_validator

from skywallet.errors import InvalidAmountError
from skywallet.units import ZERO, to_decimal


def _parse_amount(value: object) -> Decimal:
    try:
        return to_decimal(value)  # type: ignore[arg-type]
    except InvalidAmountError as e:
        raise ValueError(str(e)) from e


Amount = Annotated[Decimal, BeforeValidator(_parse_amount), Field(ge=0)]
SignedAmount = Annotated[Decimal, BeforeValidator(_parse_amount)]


class Destination(BaseModel):
    """A requested payment: coins and, for manual hours selection, hours."""

    address: str = Field(..., min_length=1)
    coins: Amount
    hours: Amount | None = None

    def to_api(self) -> dict[str, str]:
        data = {"address": self.address, "coins": format(self.coins, "f")}
        if self.hours is not None:
            data["hours"] = format(self.hours, "f")
        return data


class HoursSelection(BaseModel):
    """How the node distributes hours among outputs."""

    type: Literal["auto", "manual"] = "auto"
    mode: Literal["share"] | None = "share"
    share_factor: str | None = "0.5"

    @model_validator(mode="after")
    def clear_auto_fields_for_manual(self) -> HoursSelection:
        if self.type == "manual":
            object.__setattr__(self, "mode", None)
            object.__setattr__(self, "share_factor", None)
        return self

    def to_api(self) -> dict[str, str]:
        return self.model_dump(exclude_none=True)


class TransactionInput(BaseModel):
    """Unspent output consumed by a transaction being built."""

    uxid: str
    address: str
    coins: Amount
    hours: Amount = ZERO
    calculated_hours: Amount


class TransactionOutput(BaseModel):
    uxid: str = ""
    address: str
    coins: Amount
    hours: Amount


class UnsignedTransaction(BaseModel):
    """
    Transaction as described by the node after UTXO selection and hours allocation.

    `encoded` is the node's hex serialization; for an unsigned transaction it
    carries empty signatures.
    """

    txid: str = ""
    inner_hash: str
    inputs: list[TransactionInput]
    outputs: list[TransactionOutput]
    hours_burned: Amount
    encoded: str = ""
    change_address: str | None = None
    # Destination addresses requested by the caller, for previews
    to: list[str] = Field(default_factory=list)

    @property
    def input_hours(self) -> Decimal:
        return sum((i.calculated_hours for i in self.inputs), ZERO)

    @property
    def output_hours(self) -> Decimal:
        return sum((o.hours for o in self.outputs), ZERO)

    def computed_hours_burned(self) -> Decimal:
        """Hours burned derived from the inputs and outputs themselves."""
        return self.input_hours - self.output_hours

    def hours_sent(self) -> Decimal:
        """Hours going to the requested destinations (excludes change)."""
        destinations = set(self.to)
        return sum((o.hours for o in self.outputs if o.address in destinations), ZERO)

    @property
    def is_signed(self) -> bool:
        return False


class SignedTransaction(UnsignedTransaction):
    """Transaction with one signature per input and its final encoding."""

    signatures: list[str] = Field(default_factory=list)

    @property
    def is_signed(self) -> bool:
        return bool(self.signatures) and len(self.signatures) == len(self.inputs)


class HistoryInput(BaseModel):
    uxid: str = ""
    owner: str
    coins: Amount
    hours: Amount = ZERO
    calculated_hours: Amount


class HistoryOutput(BaseModel):
    uxid: str = ""
    dst: str
    coins: Amount
    hours: Amount


class HistoryTransaction(BaseModel):
    """Transaction as reported by the node's history feed."""

    txid: str
    timestamp: int
    inputs: list[HistoryInput]
    outputs: list[HistoryOutput]
    confirmed: bool = True

    model_config = {"frozen": True}


class ReconciledTransaction(HistoryTransaction):
    """History entry annotated from the point of view of the owned addresses."""

    outgoing: bool = False
    balance: SignedAmount = ZERO
    hours_sent: Amount = ZERO
    hours_burned: SignedAmount = ZERO
    internal_transfer: bool = False
    addresses: list[str] = Field(default_factory=list)
    note: str | None = None

    @property
    def incoming(self) -> bool:
        return not self.outgoing
