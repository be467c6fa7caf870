"""Per-directory reconciliation table and task derivation.

A SyncTable holds one SyncTableEntry per name found locally, remotely or
both at a single directory level. Once both listings are in, the table is
sealed: sides nobody reported become ABSENT and exclusion patterns are
applied. Only then can an entry derive its task.
"""
import enum
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from ..config import ExcludeMode, SyncOptions
from ..errors import SyncTableError
from ..matcher import is_excluded


class EntryStatus(enum.Enum):
    UNKNOWN = 'unknown'
    ABSENT = 'absent'
    FILE = 'file'
    DIR = 'dir'
    EXCLUDED = 'excluded'
    ERROR = 'error'


class TaskMethod(enum.Enum):
    UPLOAD = 'upload'
    SYNC = 'sync'
    NOOP = 'noop'


class Side(enum.Enum):
    LOCAL = 'local'
    REMOTE = 'remote'


@dataclass(frozen=True)
class SyncTask:
    """Action derived for one entry."""
    method: TaskMethod
    remove_remote: bool = False
    skip: bool = False
    has_error: bool = False


def derive_task(local: EntryStatus, remote: EntryStatus,
                local_mtime: Optional[int], remote_mtime: Optional[int],
                options: SyncOptions) -> SyncTask:
    """Derives the action for one entry from both sides' status.

    Pure function of its arguments. Rules, in order:

    1. An 'error' on either side flags the entry.
    2. The remote counterpart is removed first when it exists, neither side
       errored, the types differ and extra files are being removed. Excluded
       entries are never removed in 'ignore' exclude mode.
    3. Excluded or errored entries do nothing. A local file is uploaded unless
       the remote file is at least as new (and uploads are not forced). A
       local directory is synced recursively. Remote-only entries do nothing.
    """
    has_error = local is EntryStatus.ERROR or remote is EntryStatus.ERROR

    remove_remote = (remote is not EntryStatus.ABSENT
                     and not has_error
                     and local is not remote
                     and options.remove_extra_files)
    if local is EntryStatus.EXCLUDED and options.exclude_mode is ExcludeMode.IGNORE:
        remove_remote = False

    skip = False
    if local is EntryStatus.EXCLUDED or has_error:
        method = TaskMethod.NOOP
    elif local is EntryStatus.FILE:
        remote_is_current = (remote is EntryStatus.FILE
                             and local_mtime is not None and remote_mtime is not None
                             and local_mtime <= remote_mtime)
        if not options.force_upload and remote_is_current:
            skip = True
            method = TaskMethod.NOOP
        else:
            method = TaskMethod.UPLOAD
    elif local is EntryStatus.DIR:
        method = TaskMethod.SYNC
    else:
        method = TaskMethod.NOOP

    return SyncTask(method=method, remove_remote=remove_remote, skip=skip, has_error=has_error)


class SyncTableEntry:
    """Combined local and remote state of one name at one directory level."""

    def __init__(self, name: str, path: str, options: SyncOptions):
        self.name = name
        self.path = path
        self.options = options
        self.local_status = EntryStatus.UNKNOWN
        self.remote_status = EntryStatus.UNKNOWN
        self.local_mtime: Optional[int] = None
        self.remote_mtime: Optional[int] = None
        self._task: Optional[SyncTask] = None

    @property
    def is_complete(self) -> bool:
        return EntryStatus.UNKNOWN not in (self.local_status, self.remote_status)

    def get_task(self) -> SyncTask:
        """Returns the derived task, computing and caching it on first call.

        Raises:
            SyncTableError: If either side has not been populated yet.
        """
        if self._task is None:
            if not self.is_complete:
                raise SyncTableError(f"Task requested for '{self.path}' before both sides were listed")
            self._task = derive_task(self.local_status, self.remote_status,
                                     self.local_mtime, self.remote_mtime, self.options)
        return self._task

    def __repr__(self):
        return (f"SyncTableEntry({self.path!r}, local={self.local_status.value}, "
                f"remote={self.remote_status.value})")


class SyncTable:
    """Entries of one directory level, keyed by name in insertion order."""

    def __init__(self, relative_path: str, options: SyncOptions):
        self.relative_path = relative_path
        self.options = options
        self._entries: Dict[str, SyncTableEntry] = {}
        self.sealed = False

    def _child_path(self, name: str) -> str:
        return f"{self.relative_path}/{name}" if self.relative_path else name

    def _get_or_create(self, name: str) -> SyncTableEntry:
        entry = self._entries.get(name)
        if entry is None:
            entry = SyncTableEntry(name, self._child_path(name), self.options)
            self._entries[name] = entry
        return entry

    def set(self, name: str, side: Side, status: EntryStatus, mtime: Optional[int] = None) -> SyncTableEntry:
        """Sets one side of an entry, creating the entry if needed.

        Raises:
            SyncTableError: If that side was already set or the table is sealed.
        """
        if self.sealed:
            raise SyncTableError(f"Table for '{self.relative_path}' is sealed")
        if status is EntryStatus.UNKNOWN:
            raise SyncTableError("Cannot set a side to UNKNOWN")
        if side is Side.REMOTE and status is EntryStatus.EXCLUDED:
            raise SyncTableError("Only the local side can be excluded")

        entry = self._get_or_create(name)
        if side is Side.LOCAL:
            if entry.local_status is not EntryStatus.UNKNOWN:
                raise SyncTableError(f"Local status of '{entry.path}' already set")
            entry.local_status = status
            entry.local_mtime = mtime
        else:
            if entry.remote_status is not EntryStatus.UNKNOWN:
                raise SyncTableError(f"Remote status of '{entry.path}' already set")
            entry.remote_status = status
            entry.remote_mtime = mtime
        return entry

    def set_entry(self, name: str, entry: SyncTableEntry) -> SyncTableEntry:
        """Overwrites the full state of an entry with another entry's state."""
        target = self._get_or_create(name)
        target.local_status = entry.local_status
        target.remote_status = entry.remote_status
        target.local_mtime = entry.local_mtime
        target.remote_mtime = entry.remote_mtime
        target._task = None
        return target

    def get(self, name: str) -> Optional[SyncTableEntry]:
        return self._entries.get(name)

    def has(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[SyncTableEntry]:
        return iter(list(self._entries.values()))

    def __len__(self):
        return len(self._entries)

    def seal(self) -> None:
        """Marks both listings as complete.

        Unreported sides become ABSENT and every local file or directory
        matching an exclusion pattern becomes EXCLUDED. Tasks can be derived
        afterwards.
        """
        for entry in self._entries.values():
            if entry.local_status is EntryStatus.UNKNOWN:
                entry.local_status = EntryStatus.ABSENT
            if entry.remote_status is EntryStatus.UNKNOWN:
                entry.remote_status = EntryStatus.ABSENT
        self.apply_exclusions()
        self.sealed = True

    def apply_exclusions(self) -> None:
        if not self.options.exclude:
            return
        for entry in self._entries.values():
            if entry.local_status not in (EntryStatus.FILE, EntryStatus.DIR):
                continue
            if is_excluded(entry.path, entry.local_status is EntryStatus.DIR, self.options.exclude):
                entry.local_status = EntryStatus.EXCLUDED
                entry._task = None
