"""
Hardware transport through the hardware-wallet daemon's HTTP API.

The daemon owns the USB connection; this client only shapes requests and
maps daemon errors onto the device error taxonomy.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from skywallet.errors import (
    DeviceDisconnectedError,
    DeviceError,
    DeviceRejectedError,
)
from skywallet.hardware.base import DeviceInput, DeviceOutput, HardwareTransport

DEFAULT_DAEMON_TIMEOUT = 120.0  # user confirmation on the device can take a while

_REJECTED_MARKERS = ("cancelled", "canceled", "rejected", "action cancelled")
_DISCONNECTED_MARKERS = ("no device", "not connected", "disconnected", "device not found")


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", error))
    if error:
        return str(error)
    return response.text or response.reason_phrase


def map_device_error(message: str) -> DeviceError:
    lowered = message.lower()
    if any(marker in lowered for marker in _REJECTED_MARKERS):
        return DeviceRejectedError(message)
    if any(marker in lowered for marker in _DISCONNECTED_MARKERS):
        return DeviceDisconnectedError(message)
    return DeviceError(message)


class DaemonTransport(HardwareTransport):
    def __init__(
        self,
        daemon_url: str = "http://127.0.0.1:9510/api/v1",
        timeout: float = DEFAULT_DAEMON_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.daemon_url = daemon_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> Any:
        url = f"{self.daemon_url}/{endpoint}"
        try:
            response = await self.client.post(url, json=payload)
        except httpx.TransportError as e:
            logger.error(f"Hardware daemon unreachable: {endpoint} - {e}")
            raise DeviceDisconnectedError(f"Hardware daemon unreachable: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error(f"Hardware daemon call failed: {endpoint} - {message}")
            raise map_device_error(message)

        return response.json().get("data")

    async def sign_transaction(
        self, inputs: list[DeviceInput], outputs: list[DeviceOutput]
    ) -> list[str]:
        logger.info(
            f"Requesting device signature for {len(inputs)} inputs, {len(outputs)} outputs"
        )
        data = await self._post(
            "transaction_sign",
            {
                "transaction_inputs": [{"hash": i.hash, "index": i.index} for i in inputs],
                "transaction_outputs": [o.to_dict() for o in outputs],
            },
        )
        signatures = list(data or [])
        if len(signatures) != len(inputs):
            raise DeviceError(
                f"Device returned {len(signatures)} signatures for {len(inputs)} inputs"
            )
        return signatures

    async def get_addresses(self, count: int, start_index: int = 0) -> list[str]:
        data = await self._post(
            "generate_addresses",
            {"address_n": count, "start_index": start_index, "confirm_address": False},
        )
        return list((data or {}).get("addresses", []))

    async def change_label(self, label: str) -> None:
        await self._post("apply_settings", {"label": label})

    async def close(self) -> None:
        await self.client.aclose()
