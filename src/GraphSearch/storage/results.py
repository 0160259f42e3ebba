"""Result store: previously produced search results addressed by an opaque id.

Stored records carry an explicit ``kind``; nothing downstream guesses whether
a record is a page or a block from the fields it happens to have.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from GraphSearch.core.errors import LookupMiss, ValidationError
from GraphSearch.core.models import NodeKind, NodeRecord, ResultSet
from GraphSearch.utils.log import log

_RESULT_ID_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")


@dataclass(frozen=True, slots=True)
class StoredResult:
    result_id: str
    kind: NodeKind
    records: tuple[NodeRecord, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "result_id": self.result_id,
            "kind": self.kind.value,
            "records": [record.to_dict() for record in self.records],
        }


class ResultStore(Protocol):
    """Protocol for the caller-owned result store."""

    def get(self, result_id: str) -> StoredResult:
        """Return a stored result or raise ``LookupMiss``."""
        raise NotImplementedError

    def put(self, result_id: str, kind: NodeKind, records: Sequence[NodeRecord]) -> StoredResult:
        raise NotImplementedError

    def ids(self) -> list[str]:
        raise NotImplementedError


class MemoryResultStore:
    """Dictionary-backed store owned by a single caller."""

    def __init__(self) -> None:
        self._results: dict[str, StoredResult] = {}

    def get(self, result_id: str) -> StoredResult:
        stored = self._results.get(result_id)
        if stored is None:
            raise _miss(result_id, self.ids())
        return stored

    def put(self, result_id: str, kind: NodeKind, records: Sequence[NodeRecord]) -> StoredResult:
        stored = _make_result(result_id, kind, records)
        self._results[result_id] = stored
        return stored

    def ids(self) -> list[str]:
        return list(self._results)


class JsonResultStore:
    """Persist each result as ``<results_dir>/<result_id>.json``."""

    def __init__(self, results_dir: str | Path) -> None:
        self.results_dir = Path(results_dir)

    def get(self, result_id: str) -> StoredResult:
        _check_result_id(result_id)
        path = self.results_dir / f"{result_id}.json"
        if not path.is_file():
            raise _miss(result_id, self.ids())
        data = json.loads(path.read_text(encoding="utf-8"))
        return load_stored_result(data, source=str(path))

    def put(self, result_id: str, kind: NodeKind, records: Sequence[NodeRecord]) -> StoredResult:
        stored = _make_result(result_id, kind, records)
        self.results_dir.mkdir(parents=True, exist_ok=True)
        path = self.results_dir / f"{result_id}.json"
        path.write_text(json.dumps(stored.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        log.info("Result saved to %s", path)
        return stored

    def ids(self) -> list[str]:
        if not self.results_dir.is_dir():
            return []
        return sorted(path.stem for path in self.results_dir.glob("*.json"))


def load_stored_result(data: Any, *, source: str) -> StoredResult:
    """Rebuild a stored result from its JSON form.

    Raises:
        ValidationError: If the payload shape or a record kind is invalid.
    """
    if not isinstance(data, Mapping):
        raise ValidationError(f"Stored result must be an object: {source}")
    kind = _parse_kind(data.get("kind"), f"{source}: kind")
    raw_records = data.get("records")
    if not isinstance(raw_records, list):
        raise ValidationError(f"Stored result records must be a list: {source}")
    records: list[NodeRecord] = []
    for idx, item in enumerate(raw_records):
        if not isinstance(item, Mapping) or not isinstance(item.get("uid"), str):
            raise ValidationError(f"{source}: records[{idx}] must be an object with a string uid")
        records.append(
            NodeRecord(
                uid=item["uid"],
                kind=_parse_kind(item.get("kind", kind.value), f"{source}: records[{idx}].kind"),
                content=str(item.get("content") or ""),
                page_uid=item.get("page_uid"),
                page_title=item.get("page_title"),
            )
        )
    return StoredResult(result_id=str(data.get("result_id", "")), kind=kind, records=tuple(records))


def resolve_result_sets(store: ResultStore, result_ids: Sequence[str]) -> list[ResultSet]:
    """Turn stored results into named result sets for the combiner.

    Raises:
        LookupMiss: If any id is unknown; the error lists the available ids.
    """
    sets: list[ResultSet] = []
    for result_id in result_ids:
        stored = store.get(result_id)
        sets.append(
            ResultSet(
                name=result_id,
                identifiers=[record.uid for record in stored.records],
                kind=stored.kind,
                metadata={"source": "result_store", "record_count": len(stored.records)},
            )
        )
    return sets


def _make_result(result_id: str, kind: NodeKind, records: Sequence[NodeRecord]) -> StoredResult:
    _check_result_id(result_id)
    mismatched = [record.uid for record in records if record.kind is not kind]
    if mismatched:
        raise ValidationError(f"Records of result {result_id} must all be {kind.value}s: {mismatched[:5]}")
    return StoredResult(result_id=result_id, kind=kind, records=tuple(records))


def _check_result_id(result_id: str) -> None:
    if not _RESULT_ID_RE.match(result_id):
        raise ValidationError(f"Invalid result id: {result_id!r}")


def _parse_kind(value: Any, key: str) -> NodeKind:
    try:
        return NodeKind(value)
    except ValueError as error:
        raise ValidationError(f"{key} must be 'page' or 'block', got: {value!r}") from error


def _miss(result_id: str, available: Sequence[str]) -> LookupMiss:
    listing = ", ".join(available) if available else "none"
    return LookupMiss(
        f"Result '{result_id}' not found. Available results: {listing}",
        identifier=result_id,
        available=available,
    )
