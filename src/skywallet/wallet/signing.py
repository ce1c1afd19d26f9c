"""
Transaction signing for software and hardware wallets.

Software wallets are signed by the node (no local key material). Hardware
wallets are signed by the device: the transaction is projected twice, once
into the device request and once into the encoder input, and the returned
signatures are merged with the unsigned inner hash into the final encoding.
Both projections keep the transaction's input and output order, since any
reordering invalidates the signatures.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from loguru import logger

from skywallet.backends.base import NodeBackend
from skywallet.constants import HW_MAX_INPUTS, HW_MAX_OUTPUTS
from skywallet.encoding import ProtocolInput, ProtocolOutput, encode_transaction_hex
from skywallet.errors import (
    DeviceError,
    RawTransactionNotAllowed,
    TooManyInputsOutputs,
    ValidationError,
    WrongDeviceError,
)
from skywallet.hardware.base import DeviceInput, DeviceOutput, DeviceSession
from skywallet.models import SignedTransaction, UnsignedTransaction
from skywallet.units import coins_to_droplets, format_coins, hours_to_int
from skywallet.wallet.models import Wallet


class Signer(Protocol):
    async def sign(
        self,
        wallet: Wallet,
        transaction: UnsignedTransaction | None,
        password: str | None = None,
        raw_transaction: str = "",
    ) -> SignedTransaction: ...


def check_hardware_limits(transaction: UnsignedTransaction) -> None:
    if len(transaction.inputs) > HW_MAX_INPUTS or len(transaction.outputs) > HW_MAX_OUTPUTS:
        raise TooManyInputsOutputs(
            len(transaction.inputs), len(transaction.outputs), max(HW_MAX_INPUTS, HW_MAX_OUTPUTS)
        )


def build_protocol_projection(
    wallet: Wallet, transaction: UnsignedTransaction
) -> tuple[list[ProtocolInput], list[ProtocolOutput]]:
    """Encoder view: integer droplets and hours, address indexes, empty secrets."""
    index_map = wallet.address_index_map()

    inputs = []
    for inp in transaction.inputs:
        if inp.address not in index_map:
            raise ValidationError(f"Input address {inp.address} does not belong to the wallet")
        inputs.append(
            ProtocolInput(
                hash=inp.uxid,
                address=inp.address,
                address_index=index_map[inp.address],
                calculated_hours=hours_to_int(inp.calculated_hours),
                coins=coins_to_droplets(inp.coins),
                secret="",
            )
        )

    outputs = [
        ProtocolOutput(
            address=out.address,
            coins=coins_to_droplets(out.coins),
            hours=hours_to_int(out.hours),
        )
        for out in transaction.outputs
    ]
    return inputs, outputs


def build_device_projection(
    wallet: Wallet, transaction: UnsignedTransaction
) -> tuple[list[DeviceInput], list[DeviceOutput]]:
    """
    Device view: string amounts and the change marker.

    When there is more than one output, the last output paying the wallet's
    first address carries `address_index = 0` so the device treats it as
    change instead of asking the user to confirm it as a payment.
    """
    index_map = wallet.address_index_map()

    outputs = [
        DeviceOutput(
            address=out.address,
            coins=format_coins(out.coins),
            hours=str(hours_to_int(out.hours)),
        )
        for out in transaction.outputs
    ]

    if len(outputs) > 1:
        change_address = wallet.first_address
        for out in reversed(outputs):
            if out.address == change_address:
                out.address_index = 0
                break

    inputs = [
        DeviceInput(hash=inp.uxid, index=index_map.get(inp.address)) for inp in transaction.inputs
    ]
    return inputs, outputs


def _with_signatures(
    transaction: UnsignedTransaction, signatures: list[str], encoded: str
) -> SignedTransaction:
    data = transaction.model_dump()
    data.update(signatures=signatures, encoded=encoded)
    return SignedTransaction.model_validate(data)


class RemoteSigner:
    """Signs software wallets through the node, keyed by wallet id and password."""

    def __init__(self, backend: NodeBackend):
        self.backend = backend

    async def sign(
        self,
        wallet: Wallet,
        transaction: UnsignedTransaction | None,
        password: str | None = None,
        raw_transaction: str = "",
    ) -> SignedTransaction:
        encoded = raw_transaction or (transaction.encoded if transaction else "")
        if not encoded:
            raise ValidationError("Nothing to sign: no encoded transaction")

        logger.info(f"Signing transaction with software wallet {wallet.id}")
        return await self.backend.sign_transaction(wallet.id, password, encoded)


class SignerState(str, Enum):
    IDLE = "idle"
    CHECKING_DEVICE = "checking-device"
    WAITING_FOR_CONFIRMATION = "waiting-for-confirmation"


class HardwareSigner:
    """Signs hardware wallets on the connected device."""

    def __init__(self, session: DeviceSession):
        self.session = session
        self.state = SignerState.IDLE

    async def check_device(self, wallet: Wallet) -> None:
        """Make sure the connected device is the one that owns `wallet`."""
        addresses = await self.session.get_addresses(1, 0)
        if not addresses or addresses[0] != wallet.first_address:
            raise WrongDeviceError(f"Connected device does not own wallet '{wallet.label}'")

    async def sign(
        self,
        wallet: Wallet,
        transaction: UnsignedTransaction | None,
        password: str | None = None,
        raw_transaction: str = "",
    ) -> SignedTransaction:
        if raw_transaction:
            raise RawTransactionNotAllowed()
        if transaction is None:
            raise ValidationError("Hardware signing requires a transaction")

        check_hardware_limits(transaction)
        protocol_inputs, protocol_outputs = build_protocol_projection(wallet, transaction)
        device_inputs, device_outputs = build_device_projection(wallet, transaction)

        try:
            self.state = SignerState.CHECKING_DEVICE
            await self.check_device(wallet)

            self.state = SignerState.WAITING_FOR_CONFIRMATION
            logger.info(
                f"Waiting for device confirmation ({len(device_inputs)} inputs, "
                f"{len(device_outputs)} outputs)"
            )
            signatures = await self.session.sign_transaction(device_inputs, device_outputs)
        finally:
            self.state = SignerState.IDLE

        if len(signatures) != len(protocol_inputs):
            raise DeviceError(
                f"Device returned {len(signatures)} signatures for {len(protocol_inputs)} inputs"
            )

        encoded = encode_transaction_hex(
            protocol_inputs, protocol_outputs, signatures, transaction.inner_hash
        )
        logger.info("Transaction signed by hardware device")
        return _with_signatures(transaction, signatures, encoded)


class SigningCoordinator:
    """Picks the signer variant for a wallet and delegates to it."""

    def __init__(self, remote: RemoteSigner, hardware: HardwareSigner | None = None):
        self.remote = remote
        self.hardware = hardware

    def signer_for(self, wallet: Wallet) -> Signer:
        if not wallet.is_hardware:
            return self.remote
        if self.hardware is None:
            raise DeviceError("Hardware wallet support is not enabled")
        return self.hardware

    async def sign_transaction(
        self,
        wallet: Wallet,
        transaction: UnsignedTransaction | None,
        password: str | None = None,
        raw_transaction: str = "",
    ) -> SignedTransaction:
        signer = self.signer_for(wallet)
        return await signer.sign(wallet, transaction, password, raw_transaction)
