# imagedump/models.py

import stat
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Union

from .config import ProvenanceConfig

@dataclass
class PermissionStatus:
    user_name: str = ''
    group_name: str = ''
    mode: int = 0
    acl_entries: List[str] = field(default_factory=list)

    @property
    def has_acl(self) -> bool:
        return len(self.acl_entries) > 0

    def symbolic(self) -> str:
        """Права в виде rwxr-xr-x (sticky-бит как t/T)"""
        return stat.filemode(stat.S_IFREG | (self.mode & 0o1777))[1:]

@dataclass
class FileEntry:
    id: int
    name: str = ''
    permission: PermissionStatus = field(default_factory=PermissionStatus)
    replication: int = 0
    modification_time: int = 0
    access_time: int = 0
    preferred_block_size: int = 0
    # размеры блоков в байтах
    blocks: List[int] = field(default_factory=list)

    @property
    def blocks_count(self) -> int:
        return len(self.blocks)

    @property
    def size(self) -> int:
        return sum(self.blocks)

@dataclass
class DirectoryEntry:
    id: int
    name: str = ''
    permission: PermissionStatus = field(default_factory=PermissionStatus)
    modification_time: int = 0
    ns_quota: int = 0
    ds_quota: int = 0

@dataclass
class SymlinkEntry:
    id: int
    name: str = ''
    permission: PermissionStatus = field(default_factory=PermissionStatus)
    modification_time: int = 0
    access_time: int = 0
    target: str = ''

Entry = Union[FileEntry, DirectoryEntry, SymlinkEntry]

@dataclass
class Provenance:
    area: str = ProvenanceConfig.AREA
    cluster_name: str = ProvenanceConfig.CLUSTER_NAME
    namespace: str = ProvenanceConfig.NAMESPACE
    protocol: str = ProvenanceConfig.PROTOCOL

@dataclass
class WriteResult:
    records: int = 0
    directories: int = 0
    files: int = 0
    symlinks: int = 0
    total_size: int = 0
    batches: int = 0
    start_time: datetime = None
    end_time: datetime = None

    def count(self, entry: Entry) -> None:
        self.records += 1
        if isinstance(entry, DirectoryEntry):
            self.directories += 1
        elif isinstance(entry, FileEntry):
            self.files += 1
            self.total_size += entry.size
        elif isinstance(entry, SymlinkEntry):
            self.symlinks += 1

    @property
    def duration(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()
