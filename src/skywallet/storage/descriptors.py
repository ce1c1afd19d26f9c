"""
Persistence of hardware wallet descriptors.

The whole list is stored as one JSON array and rewritten on every save.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger
from pydantic import TypeAdapter

from skywallet.wallet.models import HardwareWalletDescriptor

_descriptor_list = TypeAdapter(list[HardwareWalletDescriptor])


def dump_descriptors(descriptors: list[HardwareWalletDescriptor]) -> str:
    return json.dumps([d.model_dump(by_alias=True) for d in descriptors])


def load_descriptors(blob: str) -> list[HardwareWalletDescriptor]:
    return _descriptor_list.validate_json(blob)


class DescriptorStore(ABC):
    @abstractmethod
    async def load(self) -> str | None:
        """Get the saved blob, None when nothing was saved yet"""

    @abstractmethod
    async def save(self, blob: str) -> None:
        """Replace the saved blob"""


class FileDescriptorStore(DescriptorStore):
    def __init__(self, path: Path):
        self.path = Path(path)

    async def load(self) -> str | None:
        if not self.path.exists():
            return None
        return self.path.read_text()

    async def save(self, blob: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(blob)
        tmp_path.replace(self.path)
        logger.debug(f"Saved hardware wallet descriptors to {self.path}")
