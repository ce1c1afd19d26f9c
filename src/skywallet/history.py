"""
Transaction history reconciliation.

The node does not label transactions as incoming or outgoing for a wallet,
so each one is classified here from address ownership:

- incoming: no input is owned; the balance is what owned outputs received
- outgoing: some input is owned; the balance is minus what left the owned
  wallets (outputs back to any address of the spending wallets are returns)
- internal transfer: outgoing with a zero balance, i.e. funds moved between
  owned addresses; the amounts shown are what reached addresses that were
  not spending in the transaction
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal

from loguru import logger

from skywallet.models import HistoryTransaction, ReconciledTransaction
from skywallet.units import ZERO
from skywallet.wallet.models import Wallet


def owned_address_map(wallets: Iterable[Wallet]) -> dict[str, bool]:
    return {address: True for wallet in wallets for address in wallet.address_strings()}


def _is_owned(owned: Mapping[str, bool], address: str) -> bool:
    return bool(owned.get(address, False))


def reconcile_transaction(
    transaction: HistoryTransaction,
    owned: Mapping[str, bool],
    wallets: list[Wallet],
    notes: Mapping[str, str] | None = None,
) -> ReconciledTransaction:
    """Annotate one transaction with balance, hours and relevant addresses."""
    outgoing = any(_is_owned(owned, i.owner) for i in transaction.inputs)

    # dict keeps first-seen order
    relevant: dict[str, bool] = {}
    balance = ZERO
    hours_sent = ZERO
    internal_transfer = False

    if not outgoing:
        for output in transaction.outputs:
            if _is_owned(owned, output.dst):
                relevant[output.dst] = True
                balance += output.coins
                hours_sent += output.hours
    else:
        possible_returns: set[str] = set()
        for inp in transaction.inputs:
            if _is_owned(owned, inp.owner):
                relevant[inp.owner] = True
                for wallet in wallets:
                    if wallet.owns(inp.owner):
                        possible_returns.update(wallet.address_strings())

        for output in transaction.outputs:
            if output.dst not in possible_returns:
                balance -= output.coins
                hours_sent += output.hours

        if balance == 0:
            internal_transfer = True
            input_owners = {i.owner for i in transaction.inputs}
            balance = ZERO
            hours_sent = ZERO
            for output in transaction.outputs:
                if output.dst not in input_owners:
                    relevant[output.dst] = True
                    balance += output.coins
                    hours_sent += output.hours

    input_hours: Decimal = sum((i.calculated_hours for i in transaction.inputs), ZERO)
    output_hours: Decimal = sum((o.hours for o in transaction.outputs), ZERO)

    note = (notes or {}).get(transaction.txid) or None

    data = transaction.model_dump()
    data.update(
        outgoing=outgoing,
        balance=balance,
        hours_sent=hours_sent,
        hours_burned=input_hours - output_hours,
        internal_transfer=internal_transfer,
        addresses=list(relevant),
        note=note,
    )
    return ReconciledTransaction.model_validate(data)


def sort_history(transactions: Iterable[HistoryTransaction]) -> list[HistoryTransaction]:
    """Newest first; equal timestamps ordered by transaction id."""
    by_id = sorted(transactions, key=lambda tx: tx.txid)
    return sorted(by_id, key=lambda tx: tx.timestamp, reverse=True)


def reconcile_history(
    transactions: Iterable[HistoryTransaction],
    owned: Mapping[str, bool],
    wallets: list[Wallet],
    notes: Mapping[str, str] | None = None,
) -> list[ReconciledTransaction]:
    result = [
        reconcile_transaction(tx, owned, wallets, notes) for tx in sort_history(transactions)
    ]
    logger.debug(
        f"Reconciled {len(result)} transactions "
        f"({sum(1 for tx in result if tx.internal_transfer)} internal transfers)"
    )
    return result
