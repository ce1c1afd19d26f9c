"""
Error taxonomy for wallet operations.

- ValidationError: fatal to the current operation, never retried
- RemoteServiceError: node API failures, surfaced with the HTTP status
- DeviceError: hardware device failures, no partial signature is kept
- TransientStorageError: note store unavailable, retried then downgraded
"""

from __future__ import annotations


class SkyWalletError(Exception):
    """Base class for all wallet errors."""


class ValidationError(SkyWalletError):
    """Operation rejected before any remote side effect."""


class TooManyInputsOutputs(ValidationError):
    """Hardware-destined transaction exceeds the device input/output ceiling."""

    def __init__(self, inputs: int, outputs: int, limit: int):
        self.inputs = inputs
        self.outputs = outputs
        self.limit = limit
        super().__init__(
            f"Too many inputs or outputs for hardware wallet: "
            f"{inputs} inputs, {outputs} outputs (max {limit} each)"
        )


class RawTransactionNotAllowed(ValidationError):
    """Raw transactions are never signed with a hardware device."""

    def __init__(self) -> None:
        super().__init__("Raw transactions not allowed")


class InvalidAmountError(ValidationError):
    """Coin or hours amount cannot be represented exactly."""


class NoteTooLongError(ValidationError):
    pass


class LabelTooLongError(ValidationError):
    pass


class RemoteServiceError(SkyWalletError):
    """Node API call failed."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        self.message = message
        if status is not None:
            super().__init__(f"{status}: {message}")
        else:
            super().__init__(message)


class DeviceError(SkyWalletError):
    """Hardware device operation failed."""


class DeviceDisconnectedError(DeviceError):
    pass


class DeviceRejectedError(DeviceError):
    """User rejected the operation on the device."""


class WrongDeviceError(DeviceError):
    """The connected device does not own the wallet."""


class TransientStorageError(SkyWalletError):
    """Note store temporarily unavailable."""


class EncodingError(ValidationError):
    """Transaction or address cannot be serialized or parsed."""
