"""
skywallet - build, sign, broadcast and reconcile transactions for software
(node-signed) and hardware (device-signed) wallets.
"""

__version__ = "0.1.0"

from skywallet.encoding import decode_transaction, encode_transaction
from skywallet.errors import (
    DeviceError,
    RawTransactionNotAllowed,
    RemoteServiceError,
    SkyWalletError,
    TooManyInputsOutputs,
    TransientStorageError,
    ValidationError,
)
from skywallet.history import reconcile_history
from skywallet.models import (
    Destination,
    HistoryTransaction,
    HoursSelection,
    ReconciledTransaction,
    SignedTransaction,
    UnsignedTransaction,
)

__all__ = [
    "Destination",
    "DeviceError",
    "HistoryTransaction",
    "HoursSelection",
    "RawTransactionNotAllowed",
    "ReconciledTransaction",
    "RemoteServiceError",
    "SignedTransaction",
    "SkyWalletError",
    "TooManyInputsOutputs",
    "TransientStorageError",
    "UnsignedTransaction",
    "ValidationError",
    "decode_transaction",
    "encode_transaction",
    "reconcile_history",
]
