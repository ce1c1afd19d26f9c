"""
Node backend implementations.

Available backends:
- NodeApiBackend: node REST API (v1 and v2 endpoints)
"""

from skywallet.backends.base import NodeBackend, TransactionRequest
from skywallet.backends.node_api import NodeApiBackend

__all__ = [
    "NodeApiBackend",
    "NodeBackend",
    "TransactionRequest",
]
