"""
Local and remote storage for notes and hardware wallet descriptors.
"""

from skywallet.storage.descriptors import (
    DescriptorStore,
    FileDescriptorStore,
    dump_descriptors,
    load_descriptors,
)
from skywallet.storage.notes import NodeNoteStore, NoteStore, StorageKind, put_with_retry

__all__ = [
    "DescriptorStore",
    "FileDescriptorStore",
    "NodeNoteStore",
    "NoteStore",
    "StorageKind",
    "dump_descriptors",
    "load_descriptors",
    "put_with_retry",
]
