"""
Current wallet list.

The list is a single snapshot that is replaced as a whole; readers always
see a complete list, never a partial update.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import Enum

from loguru import logger

from skywallet.errors import SkyWalletError
from skywallet.events import EventChannel, Subscription
from skywallet.wallet.models import Wallet


class LoadState(str, Enum):
    NOT_LOADED = "not-loaded"
    LOADED = "loaded"
    LOAD_FAILED = "load-failed"


class WalletStateError(SkyWalletError):
    pass


class WalletState:
    def __init__(self) -> None:
        self.state = LoadState.NOT_LOADED
        self._wallets: tuple[Wallet, ...] = ()
        self.changes: EventChannel[list[Wallet]] = EventChannel("wallets", replay_last=True)

    @property
    def loaded(self) -> bool:
        return self.state == LoadState.LOADED

    @property
    def wallets(self) -> list[Wallet]:
        if self.state == LoadState.LOAD_FAILED:
            raise WalletStateError("Initial wallet load failed")
        return list(self._wallets)

    async def load(self, loader: Callable[[], Awaitable[list[Wallet]]]) -> None:
        """
        Run the initial load. A failure moves to LOAD_FAILED, which is
        terminal: later loads and replacements are refused.
        """
        if self.state == LoadState.LOAD_FAILED:
            raise WalletStateError("Initial wallet load failed")
        try:
            wallets = await loader()
        except Exception as e:
            if self.state == LoadState.NOT_LOADED:
                logger.error(f"Initial wallet load failed: {e}")
                self.state = LoadState.LOAD_FAILED
            raise
        self.replace(wallets)

    def replace(self, wallets: list[Wallet]) -> None:
        if self.state == LoadState.LOAD_FAILED:
            raise WalletStateError("Initial wallet load failed")
        self._wallets = tuple(wallets)
        self.state = LoadState.LOADED
        logger.debug(f"Wallet list replaced ({len(wallets)} wallets)")
        self.changes.publish(list(self._wallets))

    def subscribe(self) -> Subscription[list[Wallet]]:
        return self.changes.subscribe()

    def all_addresses(self) -> list[str]:
        return [address for wallet in self.wallets for address in wallet.address_strings()]
