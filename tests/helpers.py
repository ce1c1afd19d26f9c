"""
Shared builders for test data.
"""

from __future__ import annotations

import asyncio
import hashlib

from skywallet.encoding import encode_address
from skywallet.hardware.base import DeviceInput, DeviceOutput, HardwareTransport
from skywallet.models import TransactionInput, TransactionOutput, UnsignedTransaction
from skywallet.storage.descriptors import DescriptorStore
from skywallet.wallet.models import Address, Wallet


def make_address(n: int, version: int = 0) -> str:
    """Deterministic valid address."""
    key = hashlib.sha256(f"address-{n}".encode()).digest()[:20]
    return encode_address(version, key)


def make_uxid(n: int) -> str:
    return hashlib.sha256(f"uxid-{n}".encode()).hexdigest()


def make_signature(n: int) -> str:
    return (hashlib.sha256(f"sig-{n}".encode()).digest() * 3)[:65].hex()


def make_wallet(addresses: list[str], is_hardware: bool = False, label: str = "") -> Wallet:
    return Wallet(
        id="" if is_hardware else f"{label or 'wallet'}.wlt",
        label=label or ("Hardware" if is_hardware else "Software"),
        addresses=[Address(address=a) for a in addresses],
        is_hardware=is_hardware,
    )


def make_transaction(
    input_addresses: list[str],
    outputs: list[tuple[str, str, str]],
    input_coins: str = "10",
    input_hours: str = "100",
) -> UnsignedTransaction:
    """
    Build an unsigned transaction whose fee is consistent with its inputs
    and outputs. `outputs` holds (address, coins, hours) tuples.
    """
    inputs = [
        TransactionInput(
            uxid=make_uxid(i),
            address=address,
            coins=input_coins,
            hours=input_hours,
            calculated_hours=input_hours,
        )
        for i, address in enumerate(input_addresses)
    ]
    tx_outputs = [
        TransactionOutput(address=address, coins=coins, hours=hours)
        for address, coins, hours in outputs
    ]
    tx = UnsignedTransaction(
        inner_hash=hashlib.sha256(b"inner").hexdigest(),
        inputs=inputs,
        outputs=tx_outputs,
        hours_burned="0",
        encoded="00",
    )
    return tx.model_copy(update={"hours_burned": tx.computed_hours_burned()})


class FakeTransport(HardwareTransport):
    """Device double that tracks how many requests are in flight."""

    def __init__(self, addresses: list[str], delay: float = 0.0):
        self.addresses = addresses
        self.delay = delay
        self.label = ""
        self.in_flight = 0
        self.max_in_flight = 0
        self.sign_requests: list[tuple[list[DeviceInput], list[DeviceOutput]]] = []

    async def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(self.delay)
        self.in_flight -= 1

    async def sign_transaction(
        self, inputs: list[DeviceInput], outputs: list[DeviceOutput]
    ) -> list[str]:
        await self._enter()
        self.sign_requests.append((inputs, outputs))
        return [make_signature(i) for i in range(len(inputs))]

    async def get_addresses(self, count: int, start_index: int = 0) -> list[str]:
        await self._enter()
        return self.addresses[start_index : start_index + count]

    async def change_label(self, label: str) -> None:
        await self._enter()
        self.label = label


class MemoryDescriptorStore(DescriptorStore):
    def __init__(self, blob: str | None = None):
        self.blob = blob
        self.saves = 0

    async def load(self) -> str | None:
        return self.blob

    async def save(self, blob: str) -> None:
        self.blob = blob
        self.saves += 1
