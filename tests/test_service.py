"""
Tests for the wallet service: injection, notes, balance refresh and
hardware wallet management.
"""

from __future__ import annotations

import asyncio
import json
from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pytest

from skywallet.errors import (
    DeviceError,
    LabelTooLongError,
    NoteTooLongError,
    RemoteServiceError,
    TransientStorageError,
    WrongDeviceError,
)
from skywallet.hardware.base import DeviceSession
from skywallet.models import HistoryInput, HistoryOutput, HistoryTransaction
from skywallet.storage.descriptors import dump_descriptors
from skywallet.storage.notes import NodeNoteStore, StorageKind
from skywallet.wallet.models import BalanceSnapshot, HardwareWalletDescriptor, Wallet
from skywallet.wallet.service import WalletService
from skywallet.wallet.state import LoadState, WalletStateError
from tests.helpers import FakeTransport, MemoryDescriptorStore, make_address


@pytest.fixture
def service(mock_backend: MagicMock, mock_note_store: MagicMock) -> WalletService:
    return WalletService(
        mock_backend, mock_note_store, note_retry_delay=0, balance_refresh_delay=0
    )


@pytest.fixture
def transport(hw_addresses: list[str]) -> FakeTransport:
    return FakeTransport(hw_addresses + [make_address(i) for i in range(3, 6)])


@pytest.fixture
def hw_service(
    mock_backend: MagicMock,
    mock_note_store: MagicMock,
    transport: FakeTransport,
    hw_wallet: Wallet,
) -> WalletService:
    blob = dump_descriptors([HardwareWalletDescriptor.from_wallet(hw_wallet)])
    store = MemoryDescriptorStore(blob)
    return WalletService(
        mock_backend,
        mock_note_store,
        descriptor_store=store,
        device=DeviceSession(transport),
        note_retry_delay=0,
        balance_refresh_delay=0,
    )


class TestInjection:
    @pytest.mark.asyncio
    async def test_inject_with_note(
        self, service: WalletService, mock_backend: MagicMock, mock_note_store: MagicMock
    ) -> None:
        result = await service.inject_transaction("abcd", note="coffee")

        assert result.txid == "txid123"
        assert result.note_saved
        mock_backend.inject_transaction.assert_awaited_once_with("abcd")
        mock_note_store.put.assert_awaited_once_with(StorageKind.NOTES, "txid123", "coffee")
        await service.close()

    @pytest.mark.asyncio
    async def test_inject_without_note(
        self, service: WalletService, mock_note_store: MagicMock
    ) -> None:
        result = await service.inject_transaction("abcd")

        assert result.txid == "txid123"
        assert not result.note_saved
        mock_note_store.put.assert_not_awaited()
        await service.close()

    @pytest.mark.asyncio
    async def test_note_retried_then_saved(
        self, service: WalletService, mock_note_store: MagicMock
    ) -> None:
        mock_note_store.put.side_effect = [
            TransientStorageError("down"),
            TransientStorageError("down"),
            None,
        ]

        result = await service.inject_transaction("abcd", note="coffee")

        assert result.note_saved
        assert mock_note_store.put.await_count == 3
        await service.close()

    @pytest.mark.asyncio
    async def test_note_retries_exhausted_still_succeeds(
        self, service: WalletService, mock_note_store: MagicMock
    ) -> None:
        """Injection is reported as successful even if the note is lost."""
        mock_note_store.put.side_effect = TransientStorageError("down")

        result = await service.inject_transaction("abcd", note="coffee")

        assert result.txid == "txid123"
        assert not result.note_saved
        assert mock_note_store.put.await_count == 3
        await service.close()

    @pytest.mark.asyncio
    async def test_note_retry_delay(
        self,
        mock_backend: MagicMock,
        mock_note_store: MagicMock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Retries wait one second between attempts."""
        delays: list[float] = []

        async def fake_sleep(delay: float) -> None:
            delays.append(delay)

        monkeypatch.setattr("skywallet.storage.notes.asyncio.sleep", fake_sleep)
        mock_note_store.put.side_effect = TransientStorageError("down")
        service = WalletService(mock_backend, mock_note_store, balance_refresh_delay=0)

        await service.inject_transaction("abcd", note="coffee")

        assert [d for d in delays if d] == [1.0, 1.0]
        await service.close()

    @pytest.mark.asyncio
    async def test_malformed_note_store_reply_still_succeeds(
        self, mock_backend: MagicMock
    ) -> None:
        """A note store answering with a non-JSON body only loses the note."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text="ok")

        note_store = NodeNoteStore(
            node_url="http://node.test",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        service = WalletService(
            mock_backend, note_store, note_retry_delay=0, balance_refresh_delay=0
        )

        result = await service.inject_transaction("abcd", note="rent")

        assert result.txid == "txid123"
        assert not result.note_saved
        assert len(requests) == 3
        await service.close()

    @pytest.mark.asyncio
    async def test_injection_failure(
        self, service: WalletService, mock_backend: MagicMock, mock_note_store: MagicMock
    ) -> None:
        mock_backend.inject_transaction.side_effect = RemoteServiceError("bad tx", status=400)

        with pytest.raises(RemoteServiceError) as exc_info:
            await service.inject_transaction("abcd", note="coffee")

        assert exc_info.value.status == 400
        mock_note_store.put.assert_not_awaited()
        mock_backend.get_balance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_broadcast_raw(self, service: WalletService, mock_backend: MagicMock) -> None:
        txid = await service.broadcast_raw_transaction("  abcd\n")

        assert txid == "txid123"
        mock_backend.inject_transaction.assert_awaited_once_with("abcd")
        await service.close()


class TestBalanceRefresh:
    @pytest.mark.asyncio
    async def test_refresh_scheduled_after_injection(
        self, service: WalletService, mock_backend: MagicMock
    ) -> None:
        snapshot = BalanceSnapshot(coins=Decimal("5"))
        mock_backend.get_balance.return_value = snapshot
        service.state.replace([])
        events = service.balance_events.subscribe()

        await service.inject_transaction("abcd")
        await asyncio.wait_for(events.get(), timeout=1)

        mock_backend.get_balance.assert_awaited_once_with([])
        await service.close()

    @pytest.mark.asyncio
    async def test_refresh_failure_is_logged_only(
        self, service: WalletService, mock_backend: MagicMock
    ) -> None:
        mock_backend.get_balance.side_effect = RemoteServiceError("node down")
        service.state.replace([])

        task = service.schedule_balance_refresh()
        await task

        assert task.exception() is None

    @pytest.mark.asyncio
    async def test_refresh_publishes_snapshot(
        self, service: WalletService, mock_backend: MagicMock, sw_wallet: Wallet
    ) -> None:
        mock_backend.get_balance.return_value = BalanceSnapshot(coins=Decimal("1"))
        service.state.replace([sw_wallet])

        snapshot = await service.refresh_balance()

        mock_backend.get_balance.assert_awaited_once_with(sw_wallet.address_strings())
        assert service.balance_events.subscribe().get_nowait() is snapshot


class TestLoadData:
    @pytest.mark.asyncio
    async def test_hardware_wallets_listed_first(
        self,
        hw_service: WalletService,
        mock_backend: MagicMock,
        hw_wallet: Wallet,
        sw_wallet: Wallet,
    ) -> None:
        mock_backend.get_wallets.return_value = [sw_wallet]

        await hw_service.load_data()

        wallets = hw_service.state.wallets
        assert [w.is_hardware for w in wallets] == [True, False]
        assert wallets[0].address_strings() == hw_wallet.address_strings()
        assert hw_service.all_addresses() == (
            hw_wallet.address_strings() + sw_wallet.address_strings()
        )

    @pytest.mark.asyncio
    async def test_hardware_wallets_skipped_without_device(
        self, service: WalletService, mock_backend: MagicMock, sw_wallet: Wallet
    ) -> None:
        mock_backend.get_wallets.return_value = [sw_wallet]

        await service.load_data()

        assert service.state.wallets == [sw_wallet]

    @pytest.mark.asyncio
    async def test_load_failure_is_terminal(
        self, service: WalletService, mock_backend: MagicMock
    ) -> None:
        mock_backend.get_wallets.side_effect = RemoteServiceError("node down")

        with pytest.raises(RemoteServiceError):
            await service.load_data()

        assert service.state.state == LoadState.LOAD_FAILED
        with pytest.raises(WalletStateError):
            service.state.wallets


class TestHistory:
    @pytest.mark.asyncio
    async def test_transactions_with_notes(
        self,
        service: WalletService,
        mock_backend: MagicMock,
        mock_note_store: MagicMock,
        sw_wallet: Wallet,
    ) -> None:
        own = sw_wallet.address_strings()[0]
        mock_backend.get_wallets.return_value = [sw_wallet]
        mock_backend.get_transactions.return_value = [
            HistoryTransaction(
                txid="t1",
                timestamp=1,
                inputs=[HistoryInput(owner=make_address(900), coins="2", calculated_hours="4")],
                outputs=[HistoryOutput(dst=own, coins="2", hours="2")],
            )
        ]
        mock_note_store.get.return_value = {"t1": "salary"}
        await service.load_data()

        history = await service.transactions()

        assert len(history) == 1
        assert history[0].balance == Decimal("2")
        assert history[0].note == "salary"
        mock_backend.get_transactions.assert_awaited_once_with(sw_wallet.address_strings())
        mock_note_store.get.assert_awaited_once_with(StorageKind.NOTES)

    @pytest.mark.asyncio
    async def test_notes_unavailable(
        self, service: WalletService, mock_note_store: MagicMock
    ) -> None:
        mock_note_store.get.side_effect = TransientStorageError("down")
        service.state.replace([])

        assert await service.transactions() == []


class TestUpdateNote:
    @pytest.mark.asyncio
    async def test_trimmed_and_stored(
        self, service: WalletService, mock_note_store: MagicMock
    ) -> None:
        saved = await service.update_note("t1", "  lunch  ")

        assert saved == "lunch"
        mock_note_store.put.assert_awaited_once_with(StorageKind.NOTES, "t1", "lunch")

    @pytest.mark.asyncio
    async def test_unchanged_note_not_stored(
        self, service: WalletService, mock_note_store: MagicMock
    ) -> None:
        await service.update_note("t1", "lunch ", current="lunch")

        mock_note_store.put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_clear_note(self, service: WalletService, mock_note_store: MagicMock) -> None:
        saved = await service.update_note("t1", "")

        assert saved == ""
        mock_note_store.put.assert_awaited_once_with(StorageKind.NOTES, "t1", "")

    @pytest.mark.asyncio
    async def test_too_long(self, service: WalletService, mock_note_store: MagicMock) -> None:
        with pytest.raises(NoteTooLongError):
            await service.update_note("t1", "x" * 65)
        mock_note_store.put.assert_not_awaited()


class TestHardwareWallets:
    @pytest.mark.asyncio
    async def test_rename(
        self, hw_service: WalletService, transport: FakeTransport, mock_backend: MagicMock
    ) -> None:
        await hw_service.load_data()
        wallet = hw_service.state.wallets[0]

        renamed = await hw_service.rename_wallet(wallet, " Cold storage ")

        assert renamed.label == "Cold storage"
        assert transport.label == "Cold storage"
        assert hw_service.state.wallets[0].label == "Cold storage"
        stored = json.loads(hw_service.descriptor_store.blob)
        assert stored[0]["label"] == "Cold storage"
        mock_backend.rename_wallet.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rename_label_too_long(self, hw_service: WalletService) -> None:
        await hw_service.load_data()

        with pytest.raises(LabelTooLongError):
            await hw_service.rename_wallet(hw_service.state.wallets[0], "x" * 33)

    @pytest.mark.asyncio
    async def test_rename_on_wrong_device(
        self, hw_service: WalletService, transport: FakeTransport
    ) -> None:
        await hw_service.load_data()
        transport.addresses = [make_address(999)]

        with pytest.raises(WrongDeviceError):
            await hw_service.rename_wallet(hw_service.state.wallets[0], "New")
        assert transport.label == ""

    @pytest.mark.asyncio
    async def test_rename_software_wallet(
        self, service: WalletService, mock_backend: MagicMock, sw_wallet: Wallet
    ) -> None:
        service.state.replace([sw_wallet])

        renamed = await service.rename_wallet(sw_wallet, "Spending")

        mock_backend.rename_wallet.assert_awaited_once_with(sw_wallet.id, "Spending")
        assert service.state.wallets == [renamed]

    @pytest.mark.asyncio
    async def test_add_addresses(
        self, hw_service: WalletService, transport: FakeTransport
    ) -> None:
        await hw_service.load_data()
        wallet = hw_service.state.wallets[0]

        updated = await hw_service.add_hardware_addresses(wallet, 2)

        assert updated.address_strings() == transport.addresses[:5]
        assert [a.confirmed for a in updated.addresses[3:]] == [False, False]
        stored = json.loads(hw_service.descriptor_store.blob)
        assert len(stored[0]["addresses"]) == 5

    @pytest.mark.asyncio
    async def test_acknowledge_security_warning(self, hw_service: WalletService) -> None:
        await hw_service.load_data()

        await hw_service.acknowledge_security_warning(hw_service.state.wallets[0])

        stored = json.loads(hw_service.descriptor_store.blob)
        assert stored[0]["stopShowingWarning"] is True
        assert hw_service.state.wallets[0].stop_showing_warning

    @pytest.mark.asyncio
    async def test_delete(self, hw_service: WalletService) -> None:
        await hw_service.load_data()

        await hw_service.delete_hardware_wallet(hw_service.state.wallets[0])

        assert hw_service.state.wallets == []
        assert json.loads(hw_service.descriptor_store.blob) == []

    @pytest.mark.asyncio
    async def test_device_required(self, service: WalletService, hw_wallet: Wallet) -> None:
        service.state.replace([hw_wallet])

        with pytest.raises(DeviceError):
            await service.add_hardware_addresses(hw_wallet)


@pytest.mark.asyncio
async def test_close_waits_for_background_tasks(
    service: WalletService, mock_backend: MagicMock
) -> None:
    mock_backend.get_balance.return_value = BalanceSnapshot()
    service.state.replace([])
    service.schedule_balance_refresh()

    await service.close()

    mock_backend.get_balance.assert_awaited_once()
    mock_backend.close.assert_awaited_once()
