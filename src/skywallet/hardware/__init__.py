"""
Hardware signing device access.
"""

from skywallet.hardware.base import DeviceInput, DeviceOutput, DeviceSession, HardwareTransport
from skywallet.hardware.daemon import DaemonTransport

__all__ = [
    "DaemonTransport",
    "DeviceInput",
    "DeviceOutput",
    "DeviceSession",
    "HardwareTransport",
]
