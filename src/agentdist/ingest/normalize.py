"""Map heterogeneous contact column names onto the canonical record shape.

Two lookup tables drive normalization:

* ``HEADER_VARIANTS`` decides whether a batch is acceptable. It is checked
  once, against the keys of the first row only, and lists the spellings of
  each required source column (exact, lowercase, uppercase, space separated
  and snake_case), plus the canonical names ``contactName`` and
  ``contact_name`` so already-normalized rows pass again.
* ``ROW_VARIANTS`` is used to project every row, each against its own keys.
  It accepts a few extra spellings (``Phone Number``, ``Note``) that the
  header check does not.

A file headed ``Phone Number`` therefore projects phones on every row yet
still fails the required-field check. Callers rely on exactly this
behaviour, so the two tables are kept separate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from agentdist.errors import SchemaValidationFailed
from agentdist.models import CanonicalRecord


logger = logging.getLogger(__name__)

EMPTY_FILE_ERROR = "File is empty or invalid"

_NAME_SPELLINGS = ("FirstName", "firstname", "FIRSTNAME", "First Name", "first_name")
_CANONICAL_NAME_SPELLINGS = ("contactName", "contact_name")

HEADER_VARIANTS: dict[str, frozenset[str]] = {
    "FirstName": frozenset(_NAME_SPELLINGS + _CANONICAL_NAME_SPELLINGS),
    "Phone": frozenset({"Phone", "phone", "PHONE"}),
}

ROW_VARIANTS: dict[str, tuple[str, ...]] = {
    "contact_name": _NAME_SPELLINGS + _CANONICAL_NAME_SPELLINGS,
    "phone": ("Phone", "phone", "PHONE", "Phone Number", "phone_number"),
    "notes": ("Notes", "notes", "NOTES", "Note", "note"),
}

_ROW_VARIANT_SETS = {name: frozenset(variants) for name, variants in ROW_VARIANTS.items()}


@dataclass(frozen=True)
class NormalizationResult:
    records: List[CanonicalRecord]
    errors: List[str] = field(default_factory=list)
    missing_fields: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def ensure_valid(self) -> List[CanonicalRecord]:
        if not self.is_valid:
            raise SchemaValidationFailed(self.errors, self.missing_fields)
        return self.records


def missing_required_fields(first_row: Mapping[str, object]) -> List[str]:
    keys = set(first_row.keys())
    return [name for name, variants in HEADER_VARIANTS.items() if not keys & variants]


def _find_value(row: Mapping[str, Optional[str]], variants: frozenset[str]) -> Optional[str]:
    for key in row:
        if key in variants:
            value = row[key]
            return value.strip() if value is not None else None
    return None


def normalize_row(row: Mapping[str, Optional[str]]) -> CanonicalRecord:
    data: dict[str, str] = {}
    for canonical, variants in _ROW_VARIANT_SETS.items():
        value = _find_value(row, variants)
        if value is not None:
            data[canonical] = value
    return CanonicalRecord(**data)


def normalize(raw_records: Sequence[Mapping[str, Optional[str]]]) -> NormalizationResult:
    """Project raw rows onto :class:`CanonicalRecord` and report schema errors.

    Missing required columns never stop row projection; the returned records
    must simply not be persisted when ``is_valid`` is False.
    """

    if not raw_records:
        return NormalizationResult(records=[], errors=[EMPTY_FILE_ERROR])

    missing = missing_required_fields(raw_records[0])
    errors = [f"Missing required field: {name}" for name in missing]
    if missing:
        logger.info("Header is missing required fields: %s", ", ".join(missing))

    records = [normalize_row(row) for row in raw_records]
    return NormalizationResult(records=records, errors=errors, missing_fields=missing)
