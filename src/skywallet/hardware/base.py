"""
Hardware signing device interface.

The device only sees the device projection of a transaction: string amounts,
input hashes with their address indexes, and an `address_index` marker on the
output that returns change to the wallet.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from typing import Any, TypeVar

from loguru import logger

from skywallet.errors import DeviceDisconnectedError
from skywallet.events import EventChannel

T = TypeVar("T")


@dataclass
class DeviceInput:
    hash: str
    index: int | None


@dataclass
class DeviceOutput:
    address: str
    coins: str
    hours: str
    address_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.address_index is None:
            del data["address_index"]
        return data


class HardwareTransport(ABC):
    """
    Abstract request/response client for a hardware signing device.
    Implementations talk to the device (or a daemon in front of it).
    """

    @abstractmethod
    async def sign_transaction(
        self, inputs: list[DeviceInput], outputs: list[DeviceOutput]
    ) -> list[str]:
        """Ask the device to sign; returns one hex signature per input"""

    @abstractmethod
    async def get_addresses(self, count: int, start_index: int = 0) -> list[str]:
        """Get `count` addresses starting at `start_index`"""

    @abstractmethod
    async def change_label(self, label: str) -> None:
        """Set the label shown by the device"""

    async def close(self) -> None:
        """Close transport connection"""
        pass


class DeviceSession:
    """
    Serializes requests to one physical device.

    The device has no notion of concurrent sessions, so a request is only
    issued once the previous one has completed. Connection changes observed
    while talking to the device are published on `connection_events`.
    """

    def __init__(self, transport: HardwareTransport):
        self.transport = transport
        self._lock = asyncio.Lock()
        self.connected: bool | None = None
        self.connection_events: EventChannel[bool] = EventChannel(
            "device-connection", replay_last=True
        )

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def set_connected(self, connected: bool) -> None:
        if connected == self.connected:
            return
        self.connected = connected
        logger.info(f"Hardware device {'connected' if connected else 'disconnected'}")
        self.connection_events.publish(connected)

    async def _call(self, request: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            try:
                result = await request()
            except DeviceDisconnectedError:
                self.set_connected(False)
                raise
            self.set_connected(True)
            return result

    async def sign_transaction(
        self, inputs: list[DeviceInput], outputs: list[DeviceOutput]
    ) -> list[str]:
        return await self._call(lambda: self.transport.sign_transaction(inputs, outputs))

    async def get_addresses(self, count: int, start_index: int = 0) -> list[str]:
        return await self._call(lambda: self.transport.get_addresses(count, start_index))

    async def change_label(self, label: str) -> None:
        await self._call(lambda: self.transport.change_label(label))

    async def close(self) -> None:
        await self.transport.close()
