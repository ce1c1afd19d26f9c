"""
Canonical transaction serialization.

Layout (all integers little-endian):

    u32 length          total size in bytes, including this field
    u8  type            always 0
    32B inner hash      hash of the unsigned body, the signed message
    u32 + n*65B         signatures, one per input
    u32 + n*32B         input uxids
    u32 + m*37B         outputs: u8 address version, 20B address key,
                        u64 coins (droplets), u64 hours

The hardware device and the network must agree on this byte layout
exactly, so inputs and outputs are encoded in the order given.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass

import base58

from skywallet.constants import (
    ADDRESS_CHECKSUM_SIZE,
    ADDRESS_KEY_SIZE,
    INNER_HASH_SIZE,
    OUTPUT_SIZE,
    SIGNATURE_SIZE,
    TX_HEADER_SIZE,
    TX_TYPE,
    UXID_SIZE,
)
from skywallet.errors import EncodingError

_MAX_U64 = 2**64 - 1


@dataclass
class ProtocolInput:
    """Input as fed to the encoder: integer units plus signing metadata."""

    hash: str
    address: str
    coins: int
    calculated_hours: int
    address_index: int | None = None
    secret: str = ""


@dataclass
class ProtocolOutput:
    address: str
    coins: int  # droplets
    hours: int


@dataclass
class DecodedTransaction:
    inner_hash: str
    signatures: list[str]
    inputs: list[str]
    outputs: list[ProtocolOutput]
    raw: bytes

    @property
    def txid(self) -> str:
        return transaction_id(self.raw)


def address_checksum(key: bytes, version: int) -> bytes:
    return hashlib.sha256(key + bytes([version])).digest()[:ADDRESS_CHECKSUM_SIZE]


def decode_address(address: str) -> tuple[int, bytes]:
    """
    Decode a base58 address into (version, 20-byte key).

    The base58 payload is key (20) + version (1) + checksum (4).
    """
    try:
        raw = base58.b58decode(address)
    except ValueError as e:
        raise EncodingError(f"Invalid base58 address: {address}") from e

    if len(raw) != ADDRESS_KEY_SIZE + 1 + ADDRESS_CHECKSUM_SIZE:
        raise EncodingError(f"Invalid address length: {address}")

    key = raw[:ADDRESS_KEY_SIZE]
    version = raw[ADDRESS_KEY_SIZE]
    checksum = raw[ADDRESS_KEY_SIZE + 1 :]
    if checksum != address_checksum(key, version):
        raise EncodingError(f"Invalid address checksum: {address}")
    return version, key


def encode_address(version: int, key: bytes) -> str:
    if len(key) != ADDRESS_KEY_SIZE:
        raise EncodingError(f"Address key must be {ADDRESS_KEY_SIZE} bytes")
    payload = key + bytes([version]) + address_checksum(key, version)
    return base58.b58encode(payload).decode("ascii")


def _fixed_hex(value: str, size: int, what: str) -> bytes:
    try:
        data = bytes.fromhex(value)
    except ValueError as e:
        raise EncodingError(f"Invalid {what} hex: {value!r}") from e
    if len(data) != size:
        raise EncodingError(f"{what} must be {size} bytes, got {len(data)}")
    return data


def _u64(value: int, what: str) -> bytes:
    if value < 0 or value > _MAX_U64:
        raise EncodingError(f"{what} out of range: {value}")
    return struct.pack("<Q", value)


def serialize_output(out: ProtocolOutput) -> bytes:
    version, key = decode_address(out.address)
    return bytes([version]) + key + _u64(out.coins, "coins") + _u64(out.hours, "hours")


def serialize_body(uxids: list[str], outputs: list[ProtocolOutput]) -> bytes:
    """Inputs and outputs sections, the part covered by the inner hash."""
    result = struct.pack("<I", len(uxids))
    for uxid in uxids:
        result += _fixed_hex(uxid, UXID_SIZE, "input hash")
    result += struct.pack("<I", len(outputs))
    for out in outputs:
        result += serialize_output(out)
    return result


def compute_inner_hash(uxids: list[str], outputs: list[ProtocolOutput]) -> str:
    return hashlib.sha256(serialize_body(uxids, outputs)).hexdigest()


def encode_transaction(
    inputs: list[ProtocolInput],
    outputs: list[ProtocolOutput],
    signatures: list[str],
    inner_hash: str,
) -> bytes:
    """
    Serialize a signed transaction.

    Pure and deterministic: the same inputs, outputs, signatures and inner
    hash always produce the same bytes.
    """
    if len(signatures) != len(inputs):
        raise EncodingError(
            f"Signature count {len(signatures)} does not match input count {len(inputs)}"
        )

    total_size = (
        TX_HEADER_SIZE
        + 4
        + SIGNATURE_SIZE * len(signatures)
        + 4
        + UXID_SIZE * len(inputs)
        + 4
        + OUTPUT_SIZE * len(outputs)
    )

    result = struct.pack("<I", total_size)
    result += bytes([TX_TYPE])
    result += _fixed_hex(inner_hash, INNER_HASH_SIZE, "inner hash")

    result += struct.pack("<I", len(signatures))
    for sig in signatures:
        result += _fixed_hex(sig, SIGNATURE_SIZE, "signature")

    result += serialize_body([inp.hash for inp in inputs], outputs)

    if len(result) != total_size:
        raise EncodingError(f"Encoded size mismatch: {len(result)} != {total_size}")
    return result


def encode_transaction_hex(
    inputs: list[ProtocolInput],
    outputs: list[ProtocolOutput],
    signatures: list[str],
    inner_hash: str,
) -> str:
    return encode_transaction(inputs, outputs, signatures, inner_hash).hex()


def transaction_id(raw: bytes) -> str:
    return hashlib.sha256(raw).hexdigest()


def _read_u32(data: bytes, offset: int) -> tuple[int, int]:
    if offset + 4 > len(data):
        raise EncodingError("Unexpected end of transaction data")
    return struct.unpack_from("<I", data, offset)[0], offset + 4


def _read_bytes(data: bytes, offset: int, size: int) -> tuple[bytes, int]:
    if offset + size > len(data):
        raise EncodingError("Unexpected end of transaction data")
    return data[offset : offset + size], offset + size


def decode_transaction(data: bytes | str) -> DecodedTransaction:
    """Parse a serialized transaction (bytes or hex string)."""
    if isinstance(data, str):
        try:
            data = bytes.fromhex(data.strip())
        except ValueError as e:
            raise EncodingError("Transaction is not valid hex") from e

    length, offset = _read_u32(data, 0)
    if length != len(data):
        raise EncodingError(f"Length field {length} does not match data size {len(data)}")

    tx_type, offset = _read_bytes(data, offset, 1)
    if tx_type[0] != TX_TYPE:
        raise EncodingError(f"Unknown transaction type: {tx_type[0]}")

    inner_hash, offset = _read_bytes(data, offset, INNER_HASH_SIZE)

    sig_count, offset = _read_u32(data, offset)
    signatures = []
    for _ in range(sig_count):
        sig, offset = _read_bytes(data, offset, SIGNATURE_SIZE)
        signatures.append(sig.hex())

    input_count, offset = _read_u32(data, offset)
    inputs = []
    for _ in range(input_count):
        uxid, offset = _read_bytes(data, offset, UXID_SIZE)
        inputs.append(uxid.hex())

    output_count, offset = _read_u32(data, offset)
    outputs = []
    for _ in range(output_count):
        chunk, offset = _read_bytes(data, offset, OUTPUT_SIZE)
        version = chunk[0]
        key = chunk[1 : 1 + ADDRESS_KEY_SIZE]
        coins, hours = struct.unpack_from("<QQ", chunk, 1 + ADDRESS_KEY_SIZE)
        outputs.append(
            ProtocolOutput(address=encode_address(version, key), coins=coins, hours=hours)
        )

    if offset != len(data):
        raise EncodingError(f"Trailing bytes after transaction: {len(data) - offset}")

    return DecodedTransaction(
        inner_hash=inner_hash.hex(),
        signatures=signatures,
        inputs=inputs,
        outputs=outputs,
        raw=data,
    )
