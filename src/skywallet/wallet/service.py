"""
Wallet service.

Ties together the wallet list, the node backend, the note store, hardware
wallet persistence and the hardware device. Hardware wallets are listed
before software wallets.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from loguru import logger

from skywallet.backends.base import NodeBackend
from skywallet.config import Settings
from skywallet.constants import (
    BALANCE_REFRESH_DELAY,
    HW_MAX_LABEL_LENGTH,
    NOTE_MAX_CHARS,
    NOTE_STORE_RETRIES,
    NOTE_STORE_RETRY_DELAY,
)
from skywallet.errors import (
    DeviceError,
    LabelTooLongError,
    NoteTooLongError,
    TransientStorageError,
    ValidationError,
)
from skywallet.events import EventChannel
from skywallet.hardware.base import DeviceSession
from skywallet.history import owned_address_map, reconcile_history
from skywallet.models import (
    Destination,
    HoursSelection,
    ReconciledTransaction,
    SignedTransaction,
    UnsignedTransaction,
)
from skywallet.storage.descriptors import DescriptorStore, dump_descriptors, load_descriptors
from skywallet.storage.notes import NoteStore, StorageKind, put_with_retry
from skywallet.wallet.builder import TransactionBuilder
from skywallet.wallet.models import Address, BalanceSnapshot, HardwareWalletDescriptor, Wallet
from skywallet.wallet.signing import HardwareSigner, RemoteSigner, SigningCoordinator
from skywallet.wallet.state import WalletState


@dataclass
class InjectionResult:
    txid: str
    note_saved: bool


def _wallet_key(wallet: Wallet) -> str:
    if wallet.is_hardware:
        return f"hw:{wallet.first_address}"
    return f"sw:{wallet.id}"


class WalletService:
    def __init__(
        self,
        backend: NodeBackend,
        note_store: NoteStore,
        descriptor_store: DescriptorStore | None = None,
        device: DeviceSession | None = None,
        note_retry_attempts: int = NOTE_STORE_RETRIES,
        note_retry_delay: float = NOTE_STORE_RETRY_DELAY,
        balance_refresh_delay: float = BALANCE_REFRESH_DELAY,
    ):
        self.backend = backend
        self.note_store = note_store
        self.descriptor_store = descriptor_store
        self.device = device
        self.note_retry_attempts = note_retry_attempts
        self.note_retry_delay = note_retry_delay
        self.balance_refresh_delay = balance_refresh_delay

        self.state = WalletState()
        self.hardware_signer = HardwareSigner(device) if device else None
        self.coordinator = SigningCoordinator(RemoteSigner(backend), self.hardware_signer)
        self.builder = TransactionBuilder(backend, self.coordinator)
        self.balance_events: EventChannel[BalanceSnapshot] = EventChannel(
            "balance", replay_last=True
        )
        self._background_tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> WalletService:
        from skywallet.backends.node_api import NodeApiBackend
        from skywallet.hardware.daemon import DaemonTransport
        from skywallet.storage.descriptors import FileDescriptorStore
        from skywallet.storage.notes import NodeNoteStore

        device = None
        if settings.hw_enabled:
            device = DeviceSession(
                DaemonTransport(daemon_url=settings.hw_daemon_url, timeout=settings.hw_timeout)
            )

        return cls(
            backend=NodeApiBackend(node_url=settings.node_url, timeout=settings.request_timeout),
            note_store=NodeNoteStore(node_url=settings.node_url, timeout=settings.request_timeout),
            descriptor_store=FileDescriptorStore(settings.wallets_data_path),
            device=device,
            note_retry_attempts=settings.note_retry_attempts,
            note_retry_delay=settings.note_retry_delay,
            balance_refresh_delay=settings.balance_refresh_delay,
        )

    @property
    def hardware_enabled(self) -> bool:
        return self.device is not None

    # Wallet list

    async def load_data(self) -> None:
        await self.state.load(self._load_wallets)
        logger.info(f"Loaded {len(self.state.wallets)} wallets")

    async def _load_wallets(self) -> list[Wallet]:
        software_wallets = await self.backend.get_wallets()
        hardware_wallets = await self._load_hardware_wallets() if self.hardware_enabled else []
        return hardware_wallets + software_wallets

    async def _load_hardware_wallets(self) -> list[Wallet]:
        if self.descriptor_store is None:
            return []
        blob = await self.descriptor_store.load()
        if not blob:
            return []
        return [descriptor.to_wallet() for descriptor in load_descriptors(blob)]

    def all_addresses(self) -> list[str]:
        return self.state.all_addresses()

    def _replace_wallet(self, old: Wallet, new: Wallet | None) -> list[Wallet]:
        key = _wallet_key(old)
        wallets = []
        for wallet in self.state.wallets:
            if _wallet_key(wallet) == key:
                if new is not None:
                    wallets.append(new)
            else:
                wallets.append(wallet)
        return wallets

    # Transactions

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
        return await self.builder.create_transaction(
            wallet,
            addresses,
            unspents,
            destinations,
            hours_selection=hours_selection,
            change_address=change_address,
            password=password,
            unsigned=unsigned,
        )

    async def sign_transaction(
        self,
        wallet: Wallet,
        transaction: UnsignedTransaction | None,
        password: str | None = None,
        raw_transaction: str = "",
    ) -> SignedTransaction:
        return await self.coordinator.sign_transaction(
            wallet, transaction, password=password, raw_transaction=raw_transaction
        )

    async def inject_transaction(self, encoded: str, note: str | None = None) -> InjectionResult:
        """
        Broadcast a transaction, then attach its note.

        The note is best effort: if the note store keeps failing the
        injection is still reported as successful, with `note_saved=False`.
        """
        txid = await self.backend.inject_transaction(encoded)
        self.schedule_balance_refresh()

        if not note:
            return InjectionResult(txid=txid, note_saved=False)

        saved = await put_with_retry(
            self.note_store,
            StorageKind.NOTES,
            txid,
            note,
            attempts=self.note_retry_attempts,
            delay=self.note_retry_delay,
        )
        return InjectionResult(txid=txid, note_saved=saved)

    async def broadcast_raw_transaction(self, encoded: str) -> str:
        result = await self.inject_transaction(encoded.strip())
        return result.txid

    async def transactions(self) -> list[ReconciledTransaction]:
        """Full history of all owned addresses, newest first."""
        wallets = self.state.wallets
        owned = owned_address_map(wallets)
        history = await self.backend.get_transactions(list(owned))
        notes = await self._get_notes()
        return reconcile_history(history, owned, wallets, notes)

    async def _get_notes(self) -> dict[str, str]:
        try:
            return await self.note_store.get(StorageKind.NOTES)
        except TransientStorageError as e:
            logger.warning(f"Notes unavailable, showing history without them: {e}")
            return {}

    async def update_note(self, txid: str, note: str, current: str | None = None) -> str:
        """
        Set (or clear, with an empty string) the note of a transaction.

        When the current note is known and unchanged nothing is stored.
        """
        new_note = note.strip() if note else ""
        if len(new_note) > NOTE_MAX_CHARS:
            raise NoteTooLongError(f"Note exceeds {NOTE_MAX_CHARS} characters")
        if current is not None and current.strip() == new_note:
            return new_note
        await self.note_store.put(StorageKind.NOTES, txid, new_note)
        return new_note

    # Balance

    def schedule_balance_refresh(self) -> asyncio.Task:
        """Refresh the balance in the background after a short settle delay."""
        task = asyncio.create_task(self._delayed_balance_refresh())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _delayed_balance_refresh(self) -> None:
        await asyncio.sleep(self.balance_refresh_delay)
        try:
            await self.refresh_balance()
        except Exception as e:
            logger.warning(f"Balance refresh failed: {e}")

    async def refresh_balance(self) -> BalanceSnapshot:
        snapshot = await self.backend.get_balance(self.all_addresses())
        self.balance_events.publish(snapshot)
        logger.debug(f"Balance refreshed: {snapshot.coins} coins, {snapshot.hours} hours")
        return snapshot

    # Hardware wallets

    def _require_device(self) -> tuple[DeviceSession, HardwareSigner]:
        if self.device is None or self.hardware_signer is None:
            raise DeviceError("Hardware wallet support is not enabled")
        return self.device, self.hardware_signer

    async def save_hardware_wallets(self, wallets: list[Wallet] | None = None) -> None:
        """Persist all hardware wallets and publish the wallet list."""
        if wallets is None:
            wallets = self.state.wallets
        descriptors = [HardwareWalletDescriptor.from_wallet(w) for w in wallets if w.is_hardware]
        if self.descriptor_store is not None:
            await self.descriptor_store.save(dump_descriptors(descriptors))
        self.state.replace(wallets)

    async def rename_wallet(self, wallet: Wallet, label: str) -> Wallet:
        label = label.strip()
        if not label:
            raise ValidationError("Label cannot be empty")

        if not wallet.is_hardware:
            await self.backend.rename_wallet(wallet.id, label)
            renamed = wallet.model_copy(update={"label": label})
            self.state.replace(self._replace_wallet(wallet, renamed))
            return renamed

        if len(label) > HW_MAX_LABEL_LENGTH:
            raise LabelTooLongError(
                f"Hardware wallet label exceeds {HW_MAX_LABEL_LENGTH} characters"
            )
        device, signer = self._require_device()
        await signer.check_device(wallet)
        await device.change_label(label)
        renamed = wallet.model_copy(update={"label": label})
        await self.save_hardware_wallets(self._replace_wallet(wallet, renamed))
        return renamed

    async def add_hardware_addresses(self, wallet: Wallet, count: int = 1) -> Wallet:
        if not wallet.is_hardware:
            raise ValidationError("Not a hardware wallet")
        if count < 1:
            raise ValidationError("Address count must be positive")
        device, signer = self._require_device()
        await signer.check_device(wallet)

        start = len(wallet.addresses)
        new_addresses = await device.get_addresses(count, start)
        updated = wallet.model_copy(
            update={
                "addresses": wallet.addresses
                + [Address(address=a, confirmed=False) for a in new_addresses]
            }
        )
        await self.save_hardware_wallets(self._replace_wallet(wallet, updated))
        logger.info(f"Added {len(new_addresses)} addresses to hardware wallet '{wallet.label}'")
        return updated

    async def acknowledge_security_warning(self, wallet: Wallet) -> Wallet:
        updated = wallet.model_copy(update={"stop_showing_warning": True})
        await self.save_hardware_wallets(self._replace_wallet(wallet, updated))
        return updated

    async def delete_hardware_wallet(self, wallet: Wallet) -> None:
        if not wallet.is_hardware:
            raise ValidationError("Only hardware wallets can be removed locally")
        await self.save_hardware_wallets(self._replace_wallet(wallet, None))
        logger.info(f"Removed hardware wallet '{wallet.label}'")

    async def close(self) -> None:
        """Wait for background work and close connections"""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        await self.backend.close()
        await self.note_store.close()
        if self.device is not None:
            await self.device.close()
