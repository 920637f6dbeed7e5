"""
DTC Database
============
Human readable descriptions, severity, likely causes and fixes for trouble
codes. Codes are loaded from the CSV files shipped in elmcore/data/:

    "CODE","Description","severity","cause;cause","solution;solution"

Lines starting with # are section comments. dtc_generic.csv is always loaded;
manufacturer files add P1xxx-style codes and override generic ones.

The database is built once and never mutated; for_manufacturer() returns a
new instance instead.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class DTCCategory(str, Enum):
    POWERTRAIN = "powertrain"
    CHASSIS = "chassis"
    BODY = "body"
    NETWORK = "network"


class DTCSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DTCStatus(str, Enum):
    STORED = "stored"
    PENDING = "pending"
    PERMANENT = "permanent"


_CATEGORY_BY_LETTER = {
    "P": DTCCategory.POWERTRAIN,
    "C": DTCCategory.CHASSIS,
    "B": DTCCategory.BODY,
    "U": DTCCategory.NETWORK,
}

# Second-digit groups of generic powertrain codes (SAE J2012)
_POWERTRAIN_AREAS = {
    "0": "Fuel and Air Metering and Auxiliary Emission Controls",
    "1": "Fuel and Air Metering",
    "2": "Fuel and Air Metering (Injector Circuit)",
    "3": "Ignition System or Misfire",
    "4": "Auxiliary Emission Controls",
    "5": "Vehicle Speed Controls and Idle Control System",
    "6": "Computer Output Circuit",
    "7": "Transmission",
    "8": "Transmission",
    "9": "Transmission",
    "A": "Hybrid Propulsion",
    "B": "Hybrid Propulsion",
    "C": "Hybrid Propulsion",
}


@dataclass(frozen=True)
class DTCDefinition:
    code: str
    description: str
    category: DTCCategory
    severity: DTCSeverity
    causes: Tuple[str, ...] = ()
    solutions: Tuple[str, ...] = ()
    source: str = ""  # which CSV file it came from


@dataclass(frozen=True)
class DtcInfo:
    """A code read from the vehicle, joined with its database entry."""
    code: str
    description: str
    category: DTCCategory
    severity: DTCSeverity
    status: DTCStatus = DTCStatus.STORED
    known: bool = True
    causes: Tuple[str, ...] = field(default_factory=tuple)
    solutions: Tuple[str, ...] = field(default_factory=tuple)


def category_for(code: str) -> DTCCategory:
    return _CATEGORY_BY_LETTER.get((code or "P")[:1].upper(), DTCCategory.POWERTRAIN)


def is_manufacturer_specific(code: str) -> bool:
    key = (code or "").upper()
    if len(key) < 3:
        return False
    group = key[1]
    if key[0] == "P":
        # P1xxx and P30xx-P33xx belong to the manufacturer
        return group == "1" or (group == "3" and key[2] in "0123")
    return group in "12"


def generic_description(code: str) -> str:
    """Fallback text built only from the code prefix."""
    key = (code or "").strip().upper()
    category = category_for(key).value.capitalize()
    if len(key) < 2:
        return f"{category} - unknown"
    if key[0] in "BCU" and key[1] == "3":
        return f"{category} - reserved"
    if is_manufacturer_specific(key):
        return f"{category} - manufacturer specific"
    if key[0] == "P" and key[1] in "02" and len(key) >= 3:
        area = _POWERTRAIN_AREAS.get(key[2])
        if area:
            return f"{category} - generic: {area}"
    return f"{category} - generic"


def _data_dir() -> Path:
    return Path(__file__).resolve().parents[1] / "data"


def _split_list(cell: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in (cell or "").split(";") if part.strip())


class DTCDatabase:
    """
    Read-only trouble code lookup.

    manufacturer:
      - None: generic codes + every manufacturer file
      - a brand name from MANUFACTURER_FILES: generic + that brand only
    extra_files:
      - more CSV files in the same format (custom extension point)
    """

    MANUFACTURER_FILES = {
        "ford": "dtc_ford.csv",
        "lincoln": "dtc_ford.csv",
        "gm": "dtc_gm.csv",
        "chevrolet": "dtc_gm.csv",
        "cadillac": "dtc_gm.csv",
        "toyota": "dtc_toyota.csv",
        "lexus": "dtc_toyota.csv",
        "volkswagen": "dtc_vag.csv",
        "vw": "dtc_vag.csv",
        "audi": "dtc_vag.csv",
    }

    def __init__(
        self,
        manufacturer: Optional[str] = None,
        extra_files: Optional[Iterable[Path]] = None,
        data_dir: Optional[Path] = None,
    ):
        self.manufacturer = manufacturer
        self._data_dir = Path(data_dir) if data_dir else _data_dir()
        self._extra_files = [Path(p) for p in (extra_files or [])]
        self._codes: Dict[str, DTCDefinition] = {}
        self._load_databases()

    def _load_databases(self) -> None:
        data_dir = self._data_dir
        if not data_dir.exists():
            logger.warning("DTC data directory %s not found", data_dir)
            return

        generic_path = data_dir / "dtc_generic.csv"
        if generic_path.exists():
            self._load_from_csv(generic_path, "generic")

        if self.manufacturer:
            mfr_lower = self.manufacturer.lower()
            filename = self.MANUFACTURER_FILES.get(mfr_lower)
            if filename and (data_dir / filename).exists():
                self._load_from_csv(data_dir / filename, mfr_lower)
            elif not filename:
                logger.info("No manufacturer DTC file for %r, generic codes only", self.manufacturer)
        else:
            for filename in sorted(set(self.MANUFACTURER_FILES.values())):
                mfr_path = data_dir / filename
                if mfr_path.exists():
                    self._load_from_csv(mfr_path, mfr_path.stem)

        for path in self._extra_files:
            self._load_from_csv(path, path.stem)

        logger.debug("DTC database loaded %d codes", len(self._codes))

    def _load_from_csv(self, csv_path: Path, source: str) -> None:
        with csv_path.open("r", encoding="utf-8-sig", newline="") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()

                if not line or line.startswith("#"):
                    continue

                row = next(csv.reader([line]))
                if len(row) < 2 or not row[0].strip():
                    logger.warning("%s:%d: skipped malformed row", csv_path.name, lineno)
                    continue

                code = row[0].strip().upper()
                severity_text = row[2].strip().lower() if len(row) > 2 else ""
                try:
                    severity = DTCSeverity(severity_text) if severity_text else DTCSeverity.MEDIUM
                except ValueError:
                    logger.warning("%s:%d: unknown severity %r", csv_path.name, lineno, severity_text)
                    severity = DTCSeverity.MEDIUM

                self._codes[code] = DTCDefinition(
                    code=code,
                    description=row[1].strip(),
                    category=category_for(code),
                    severity=severity,
                    causes=_split_list(row[3]) if len(row) > 3 else (),
                    solutions=_split_list(row[4]) if len(row) > 4 else (),
                    source=source,
                )

    def for_manufacturer(self, manufacturer: Optional[str]) -> "DTCDatabase":
        return DTCDatabase(manufacturer=manufacturer, extra_files=self._extra_files, data_dir=self._data_dir)

    # -----------------------------
    # Queries
    # -----------------------------
    def lookup(self, code: str) -> Optional[DTCDefinition]:
        key = (code or "").strip().upper()
        return self._codes.get(key)

    def get_description(self, code: str) -> str:
        info = self.lookup(code)
        return info.description if info else generic_description(code)

    def describe(self, code: str, status: DTCStatus = DTCStatus.STORED) -> DtcInfo:
        key = (code or "").strip().upper()
        definition = self._codes.get(key)
        if definition is None:
            return DtcInfo(
                code=key,
                description=generic_description(key),
                category=category_for(key),
                severity=DTCSeverity.MEDIUM,
                status=status,
                known=False,
            )
        return DtcInfo(
            code=key,
            description=definition.description,
            category=definition.category,
            severity=definition.severity,
            status=status,
            known=True,
            causes=definition.causes,
            solutions=definition.solutions,
        )

    def search(self, query: str) -> List[DTCDefinition]:
        """Codes whose code, description, causes or solutions contain query."""
        q = (query or "").strip().lower()
        if not q:
            return []
        results = []
        for definition in self._codes.values():
            haystack = [definition.code.lower(), definition.description.lower()]
            haystack.extend(c.lower() for c in definition.causes)
            haystack.extend(s.lower() for s in definition.solutions)
            if any(q in text for text in haystack):
                results.append(definition)
        return sorted(results, key=lambda d: d.code)

    def by_category(self, category: DTCCategory) -> List[DTCDefinition]:
        return sorted(
            (d for d in self._codes.values() if d.category == category),
            key=lambda d: d.code,
        )

    @property
    def count(self) -> int:
        return len(self._codes)

    def __contains__(self, code: str) -> bool:
        return self.lookup(code) is not None

    def __len__(self) -> int:
        return len(self._codes)
