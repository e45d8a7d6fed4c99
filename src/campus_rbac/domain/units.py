"""Organizational-unit references and the rules for comparing them.

Records across the portal refer to a department either by its opaque
identifier or by a human-readable label (full name or abbreviation). A
``UnitRef`` keeps track of which form a value was captured in, and
``UnitDirectory.compare`` is the single place where two references are
decided to denote the same unit.

Matching rules, applied to both sides after trimming:

- each side is resolved against the directory to the set of unit ids it can
  denote (ids first for ``UnitId``, names and abbreviations first for
  ``UnitName``);
- two unresolvable values match only when their normalized text is equal
  (case-folded, whitespace collapsed);
- a resolvable value never matches an unresolvable one;
- resolved sets that are disjoint never match;
- overlapping sets match only when each side resolves to exactly one unit,
  otherwise the comparison is ``AMBIGUOUS`` and callers must deny.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class UnitId:
    value: str

    @property
    def kind(self) -> str:
        return "id"


@dataclass(frozen=True)
class UnitName:
    value: str

    @property
    def kind(self) -> str:
        return "name"


UnitRef = UnitId | UnitName


def unit_ref_from(kind: str | None, value: str | None) -> UnitRef | None:
    """Rebuild a ``UnitRef`` from its stored ``(kind, value)`` pair."""
    if value is None or not value.strip():
        return None
    if kind == "name":
        return UnitName(value)
    return UnitId(value)


@dataclass(frozen=True)
class UnitRecord:
    unit_id: str
    name: str
    abbreviation: str | None = None
    head_id: str | None = None


class UnitMatch(Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    AMBIGUOUS = "ambiguous"


def normalize_unit_text(text: str) -> str:
    return " ".join(text.split()).casefold()


class UnitDirectory:
    """Read-only index of known units keyed by id, name, and abbreviation."""

    def __init__(self, units: Iterable[UnitRecord] = ()) -> None:
        by_id: dict[str, UnitRecord] = {}
        by_name: dict[str, set[str]] = {}
        by_abbreviation: dict[str, set[str]] = {}
        for unit in units:
            unit_id = unit.unit_id.strip()
            by_id[unit_id] = unit
            by_name.setdefault(normalize_unit_text(unit.name), set()).add(unit_id)
            if unit.abbreviation and unit.abbreviation.strip():
                key = normalize_unit_text(unit.abbreviation)
                by_abbreviation.setdefault(key, set()).add(unit_id)
        self._by_id = by_id
        self._by_name = {key: frozenset(ids) for key, ids in by_name.items()}
        self._by_abbreviation = {key: frozenset(ids) for key, ids in by_abbreviation.items()}

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, unit_id: str) -> UnitRecord | None:
        return self._by_id.get(unit_id.strip())

    def classify(self, raw: UnitRef | str | None) -> UnitRef | None:
        """Tag a raw stored value as an id when the directory knows it as one."""
        if raw is None:
            return None
        if isinstance(raw, (UnitId, UnitName)):
            return raw if raw.value.strip() else None
        text = raw.strip()
        if not text:
            return None
        if text in self._by_id:
            return UnitId(text)
        return UnitName(text)

    def resolve(self, ref: UnitRef) -> frozenset[str]:
        """Return the ids of every unit ``ref`` can denote."""
        text = ref.value.strip()
        if not text:
            return frozenset()
        key = normalize_unit_text(text)
        # A name of one unit may be another unit's abbreviation; keep both.
        ids = self._by_name.get(key, frozenset()) | self._by_abbreviation.get(key, frozenset())
        if isinstance(ref, UnitId):
            if text in self._by_id:
                return frozenset({text})
            return ids
        if ids:
            return ids
        if text in self._by_id:
            return frozenset({text})
        return frozenset()

    def compare(self, left: UnitRef, right: UnitRef) -> UnitMatch:
        left_text = left.value.strip()
        right_text = right.value.strip()
        if not left_text or not right_text:
            return UnitMatch.MISMATCH

        left_ids = self.resolve(left)
        right_ids = self.resolve(right)
        if not left_ids and not right_ids:
            if normalize_unit_text(left_text) == normalize_unit_text(right_text):
                return UnitMatch.MATCH
            return UnitMatch.MISMATCH
        if not left_ids or not right_ids:
            return UnitMatch.MISMATCH
        if left_ids.isdisjoint(right_ids):
            return UnitMatch.MISMATCH
        if len(left_ids) == 1 and len(right_ids) == 1:
            return UnitMatch.MATCH
        return UnitMatch.AMBIGUOUS

    def aliases(self, ref: UnitRef) -> frozenset[str]:
        """Normalized forms of every stored string that may denote ``ref``'s unit."""
        text = ref.value.strip()
        if not text:
            return frozenset()
        ids = self.resolve(ref)
        if len(ids) != 1:
            return frozenset({normalize_unit_text(text)})
        unit = self._by_id[next(iter(ids))]
        forms = {text, unit.unit_id, unit.name}
        if unit.abbreviation and self.resolve(UnitName(unit.abbreviation)) == ids:
            forms.add(unit.abbreviation)
        return frozenset(normalize_unit_text(form) for form in forms if form)
