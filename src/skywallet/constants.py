"""
Coin, hours and hardware-device constants.
"""

from __future__ import annotations

# Smallest on-chain coin unit: 1 coin = 1,000,000 droplets
COIN_DECIMALS = 6

# Device memory limit for a single signing request
HW_MAX_INPUTS = 8
HW_MAX_OUTPUTS = 8

# Label length accepted by the device firmware
HW_MAX_LABEL_LENGTH = 32

# Notes are short free text attached to a transaction id
NOTE_MAX_CHARS = 64

# Serialized transaction layout sizes (bytes)
TX_TYPE = 0
INNER_HASH_SIZE = 32
SIGNATURE_SIZE = 65
UXID_SIZE = 32
ADDRESS_KEY_SIZE = 20
ADDRESS_CHECKSUM_SIZE = 4
# version (1) + key (20) + coins (8) + hours (8)
OUTPUT_SIZE = 1 + ADDRESS_KEY_SIZE + 8 + 8
# length (4) + type (1) + inner hash (32)
TX_HEADER_SIZE = 4 + 1 + INNER_HASH_SIZE

# Post-injection behaviour
NOTE_STORE_RETRIES = 3
NOTE_STORE_RETRY_DELAY = 1.0  # seconds
BALANCE_REFRESH_DELAY = 0.032  # seconds, lets the node ledger settle
