from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from ..errors import UnknownPidError
from .definitions import PIDDefinition
from .standard import STANDARD_PIDS


def normalize_pid(pid: str) -> str:
    """'c' / 'C' / '0c' -> '0C'"""
    pid = (pid or "").strip().upper()
    if len(pid) == 1:
        pid = "0" + pid
    return pid


class PIDDatabase:
    """
    Immutable (mode, pid) -> PIDDefinition table.

    Build it once and share the instance; extended() returns a new database
    with manufacturer or custom definitions layered on top.
    """

    def __init__(self, definitions: Iterable[PIDDefinition]):
        table: Dict[Tuple[str, str], PIDDefinition] = {}
        for definition in definitions:
            table[(definition.mode, normalize_pid(definition.pid))] = definition
        self._table: Mapping[Tuple[str, str], PIDDefinition] = MappingProxyType(table)

    @classmethod
    def standard(cls) -> "PIDDatabase":
        return cls(STANDARD_PIDS)

    def extended(self, definitions: Iterable[PIDDefinition]) -> "PIDDatabase":
        return PIDDatabase(list(self._table.values()) + list(definitions))

    def get(self, mode: str, pid: str) -> Optional[PIDDefinition]:
        return self._table.get(((mode or "").strip().upper(), normalize_pid(pid)))

    def require(self, mode: str, pid: str) -> PIDDefinition:
        definition = self.get(mode, pid)
        if definition is None:
            raise UnknownPidError(mode, normalize_pid(pid))
        return definition

    def pids_for_mode(self, mode: str) -> List[str]:
        return sorted(pid for m, pid in self._table if m == mode)

    def __contains__(self, key: Tuple[str, str]) -> bool:
        mode, pid = key
        return self.get(mode, pid) is not None

    def __iter__(self) -> Iterator[PIDDefinition]:
        return iter(self._table.values())

    def __len__(self) -> int:
        return len(self._table)


_DEFAULT: Optional[PIDDatabase] = None


def default_database() -> PIDDatabase:
    """Shared standard table, built on first use."""
    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = PIDDatabase.standard()
    return _DEFAULT
