"""
Transaction builder.

UTXO selection and hours allocation are done by the node. The builder picks
the endpoint, enforces the hardware input/output ceiling and, for hardware
wallets, runs the built transaction through the signing coordinator.
"""

from __future__ import annotations

from loguru import logger

from skywallet.backends.base import NodeBackend, TransactionRequest
from skywallet.errors import ValidationError
from skywallet.models import Destination, HoursSelection, SignedTransaction, UnsignedTransaction
from skywallet.wallet.models import Wallet
from skywallet.wallet.signing import SigningCoordinator, check_hardware_limits


class TransactionBuilder:
    def __init__(self, backend: NodeBackend, coordinator: SigningCoordinator):
        self.backend = backend
        self.coordinator = coordinator

    async def create_transaction(
        self,
        wallet: Wallet | None,
        addresses: list[str] | None,
        unspents: list[str] | None,
        destinations: list[Destination],
        hours_selection: HoursSelection | None = None,
        change_address: str | None = None,
        password: str | None = None,
        unsigned: bool = False,
    ) -> UnsignedTransaction | SignedTransaction:
        """
        Build a transaction from a wallet, an address list or an unspent list.

        Args:
            wallet: Source wallet (None for address/unspent based builds)
            addresses: Restrict inputs to these addresses (ignored if unspents given)
            unspents: Spend exactly these outputs
            destinations: Payments to make
            hours_selection: Hours allocation policy (auto/share 0.5 by default)
            change_address: Where leftover value goes
            password: Software wallet password
            unsigned: Only build, do not sign

        Returns:
            For hardware wallets signed on the device, the unsigned body with
            the device-signed encoding substituted in.

        Raises:
            TooManyInputsOutputs: Hardware build above the device ceiling
            RemoteServiceError: Node build failed
            DeviceError: Device signing failed
        """
        if not destinations:
            raise ValidationError("At least one destination is required")

        if unspents:
            addresses = None

        if wallet and wallet.is_hardware and not change_address:
            change_address = wallet.first_address

        request = TransactionRequest(
            hours_selection=hours_selection or HoursSelection(),
            wallet_id=wallet.id if wallet else None,
            password=password,
            addresses=addresses,
            unspents=unspents,
            to=destinations,
            change_address=change_address,
            unsigned=unsigned,
        )

        use_v2_endpoint = not wallet or wallet.is_hardware
        logger.debug(
            f"Building transaction via {'v2' if use_v2_endpoint else 'legacy'} endpoint "
            f"({len(destinations)} destinations)"
        )
        if use_v2_endpoint:
            transaction = await self.backend.create_transaction(request)
        else:
            transaction = await self.backend.create_wallet_transaction(request)

        transaction = transaction.model_copy(
            update={"to": [d.address for d in destinations], "change_address": change_address}
        )

        if wallet and wallet.is_hardware:
            check_hardware_limits(transaction)

        burned = transaction.computed_hours_burned()
        if burned < 0 or burned != transaction.hours_burned:
            raise ValidationError(
                f"Inconsistent hours burned: fee {transaction.hours_burned}, "
                f"inputs - outputs = {burned}"
            )

        if wallet and wallet.is_hardware and not unsigned:
            signed = await self.coordinator.sign_transaction(wallet, transaction)
            # Keep the unsigned body for display; only the encoding changes
            transaction = transaction.model_copy(update={"encoded": signed.encoded})

        logger.info(
            f"Built transaction: {len(transaction.inputs)} inputs, "
            f"{len(transaction.outputs)} outputs, {transaction.hours_burned} hours burned"
        )
        return transaction
