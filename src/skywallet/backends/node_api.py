"""
Node REST API backend.

Talks to both API generations of the node:
- v1 responses are bare JSON, errors are plain text bodies
- v2 responses are wrapped in {"data": ...}, errors in {"error": {"message", "code"}}
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from skywallet.backends.base import NodeBackend, TransactionRequest
from skywallet.errors import RemoteServiceError
from skywallet.models import (
    HistoryInput,
    HistoryOutput,
    HistoryTransaction,
    SignedTransaction,
    TransactionInput,
    TransactionOutput,
    UnsignedTransaction,
)
from skywallet.units import droplets_to_coins, to_decimal
from skywallet.wallet.models import Address, AddressBalance, BalanceSnapshot, Wallet

DEFAULT_API_TIMEOUT = 30.0

_EMPTY_SIGNATURE = "0" * 130


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return str(data["error"].get("message", response.reason_phrase))
    return response.text.strip() or response.reason_phrase


def parse_transaction(data: dict[str, Any]) -> UnsignedTransaction | SignedTransaction:
    """
    Parse a node {"transaction": ..., "encoded_transaction": ...} payload.

    A transaction whose signatures are all present is returned as
    SignedTransaction; the node's `fee` field becomes `hours_burned`.
    """
    tx = data["transaction"]
    fields = {
        "txid": tx.get("txid", ""),
        "inner_hash": tx.get("inner_hash", ""),
        "inputs": [
            TransactionInput(
                uxid=i["uxid"],
                address=i["address"],
                coins=i["coins"],
                hours=i.get("hours", "0"),
                calculated_hours=i["calculated_hours"],
            )
            for i in tx.get("inputs", [])
        ],
        "outputs": [
            TransactionOutput(
                uxid=o.get("uxid", ""),
                address=o["address"],
                coins=o["coins"],
                hours=o["hours"],
            )
            for o in tx.get("outputs", [])
        ],
        "hours_burned": tx.get("fee", "0"),
        "encoded": data.get("encoded_transaction", ""),
    }

    sigs = [s for s in tx.get("sigs") or [] if s and s != _EMPTY_SIGNATURE]
    if sigs and len(sigs) == len(fields["inputs"]):
        return SignedTransaction(signatures=sigs, **fields)
    return UnsignedTransaction(**fields)


def parse_history_transaction(item: dict[str, Any]) -> HistoryTransaction:
    """Parse one entry of the verbose transactions endpoint."""
    txn = item.get("txn", item)
    status = item.get("status") or {}
    timestamp = txn.get("timestamp") or item.get("time") or 0
    return HistoryTransaction(
        txid=txn["txid"],
        timestamp=int(timestamp),
        confirmed=bool(status.get("confirmed", True)),
        inputs=[
            HistoryInput(
                uxid=i.get("uxid", ""),
                owner=i["owner"],
                coins=i["coins"],
                hours=i.get("hours", "0"),
                calculated_hours=i.get("calculated_hours", "0"),
            )
            for i in txn.get("inputs", [])
        ],
        outputs=[
            HistoryOutput(uxid=o.get("uxid", ""), dst=o["dst"], coins=o["coins"], hours=o["hours"])
            for o in txn.get("outputs", [])
        ],
    )


def parse_wallet(item: dict[str, Any]) -> Wallet:
    meta = item.get("meta", {})
    return Wallet(
        id=meta.get("filename", ""),
        label=meta.get("label", ""),
        encrypted=bool(meta.get("encrypted", False)),
        is_hardware=False,
        addresses=[Address(address=e["address"]) for e in item.get("entries") or []],
    )


def parse_balance(data: dict[str, Any]) -> BalanceSnapshot:
    """Balances come back in droplets (coins) and integer hours."""
    confirmed = data.get("confirmed", {})
    predicted = data.get("predicted", confirmed)
    snapshot = BalanceSnapshot(
        coins=droplets_to_coins(confirmed.get("coins", 0)),
        hours=to_decimal(confirmed.get("hours", 0)),
        predicted_coins=droplets_to_coins(predicted.get("coins", 0)),
        predicted_hours=to_decimal(predicted.get("hours", 0)),
    )
    for address, balance in (data.get("addresses") or {}).items():
        addr_confirmed = balance.get("confirmed", {})
        snapshot.addresses[address] = AddressBalance(
            coins=droplets_to_coins(addr_confirmed.get("coins", 0)),
            hours=to_decimal(addr_confirmed.get("hours", 0)),
        )
    return snapshot


class NodeApiBackend(NodeBackend):
    def __init__(
        self,
        node_url: str = "http://127.0.0.1:6420",
        timeout: float = DEFAULT_API_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.node_url = node_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _api_call(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        v2: bool = False,
    ) -> Any:
        """
        Make a node API call.

        Raises:
            RemoteServiceError: On HTTP errors (with status) or connection failures
        """
        version = "v2" if v2 else "v1"
        url = f"{self.node_url}/api/{version}/{endpoint}"

        try:
            if method == "GET":
                response = await self.client.get(url, params=params)
            elif method == "POST":
                response = await self.client.post(url, params=params, json=json, data=data)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")
        except httpx.HTTPError as e:
            logger.error(f"Node API call failed: {endpoint} - {e}")
            raise RemoteServiceError(str(e)) from e

        if response.is_error:
            message = _error_message(response)
            logger.error(f"Node API error: {endpoint} - {response.status_code} {message}")
            raise RemoteServiceError(message, status=response.status_code)

        result = response.json()
        if v2:
            return result.get("data")
        return result

    async def create_transaction(self, request: TransactionRequest) -> UnsignedTransaction:
        data = await self._api_call(
            "POST", "transaction", json=request.to_api(include_unsigned=False), v2=True
        )
        return parse_transaction(data)

    async def create_wallet_transaction(
        self, request: TransactionRequest
    ) -> UnsignedTransaction | SignedTransaction:
        data = await self._api_call(
            "POST", "wallet/transaction", json=request.to_api(include_unsigned=True)
        )
        return parse_transaction(data)

    async def sign_transaction(
        self, wallet_id: str, password: str | None, encoded_transaction: str
    ) -> SignedTransaction:
        data = await self._api_call(
            "POST",
            "wallet/transaction/sign",
            json={
                "wallet_id": wallet_id,
                "password": password,
                "encoded_transaction": encoded_transaction,
            },
            v2=True,
        )
        tx = parse_transaction(data)
        if not isinstance(tx, SignedTransaction):
            raise RemoteServiceError("Node returned a transaction without signatures")
        return tx

    async def get_transactions(self, addresses: list[str]) -> list[HistoryTransaction]:
        if not addresses:
            return []
        data = await self._api_call(
            "GET", "transactions", params={"addrs": ",".join(addresses), "verbose": 1}
        )
        return [parse_history_transaction(item) for item in data or []]

    async def inject_transaction(self, encoded_transaction: str) -> str:
        txid = await self._api_call(
            "POST", "injectTransaction", json={"rawtx": encoded_transaction}
        )
        logger.info(f"Transaction injected: {txid}")
        return str(txid)

    async def get_wallets(self) -> list[Wallet]:
        data = await self._api_call("GET", "wallets")
        return [parse_wallet(item) for item in data or []]

    async def get_balance(self, addresses: list[str]) -> BalanceSnapshot:
        if not addresses:
            return BalanceSnapshot()
        data = await self._api_call("GET", "balance", params={"addrs": ",".join(addresses)})
        return parse_balance(data)

    async def rename_wallet(self, wallet_id: str, label: str) -> None:
        await self._api_call("POST", "wallet/update", data={"id": wallet_id, "label": label})

    async def close(self) -> None:
        await self.client.aclose()
