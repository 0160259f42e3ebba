"""Set algebra over named result sets.

Pipeline order is fixed: intra-set dedup, frequency counting, the set
operation, frequency filtering, cross-set dedup, ordering, then limiting.
Statistics and source attribution describe the combined set before the limit
is applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Sequence

from GraphSearch.core.errors import TypeMismatchError, ValidationError
from GraphSearch.core.models import CombinationStats, CombinedResult, ResultSet
from GraphSearch.utils.log import log

MAX_COMBINE_LIMIT = 10000


class SetOperation(str, Enum):
    UNION = "union"
    INTERSECTION = "intersection"
    DIFFERENCE = "difference"
    SYMMETRIC_DIFFERENCE = "symmetric_difference"


class CombineOrder(str, Enum):
    FIRST_APPEARANCE = "first_appearance"
    ALPHABETICAL = "alphabetical"
    FREQUENCY = "frequency"
    REVERSE_FREQUENCY = "reverse_frequency"


@dataclass(frozen=True, slots=True)
class CombineOptions:
    """Post-processing options for ``combine_result_sets``.

    Attributes:
        deduplicate_within: Drop repeated identifiers inside each set first.
        deduplicate_across: Drop repeated identifiers from the combined output.
        preserve_order: With ``first_appearance``, re-sort by first-seen position.
        order_by: Output ordering.
        min_appearances: Keep identifiers found in at least this many sets.
        max_appearances: Keep identifiers found in at most this many sets.
        include_source_info: Attach the set names each identifier came from.
        limit: Maximum number of identifiers returned.
    """

    deduplicate_within: bool = True
    deduplicate_across: bool = True
    preserve_order: bool = False
    order_by: CombineOrder = CombineOrder.FIRST_APPEARANCE
    min_appearances: int = 1
    max_appearances: int | None = None
    include_source_info: bool = False
    limit: int = 1000

    def __post_init__(self) -> None:
        if not 1 <= self.limit <= MAX_COMBINE_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_COMBINE_LIMIT}: {self.limit}")
        if self.min_appearances < 1:
            raise ValidationError(f"min_appearances must be >= 1: {self.min_appearances}")
        if self.max_appearances is not None and self.max_appearances < self.min_appearances:
            raise ValidationError("max_appearances must be >= min_appearances")


def combine_result_sets(
    sets: Sequence[ResultSet],
    operation: SetOperation,
    options: CombineOptions | None = None,
) -> CombinedResult:
    """Combine named result sets of one kind.

    Args:
        sets: At least two result sets with unique names and a shared kind.
        operation: Set operation to apply.
        options: Post-processing options.

    Returns:
        Combined identifiers with statistics.

    Raises:
        ValidationError: If fewer than two sets are given or names repeat.
        TypeMismatchError: If the sets do not share the same kind.
    """
    opts = options or CombineOptions()
    _validate_sets(sets)

    processed = [_dedupe(s.identifiers) if opts.deduplicate_within else list(s.identifiers) for s in sets]

    frequency: dict[str, int] = {}
    first_seen: dict[str, int] = {}
    sources: dict[str, list[str]] = {}
    for result_set, identifiers in zip(sets, processed):
        for uid in identifiers:
            first_seen.setdefault(uid, len(first_seen))
        for uid in _dedupe(identifiers):
            frequency[uid] = frequency.get(uid, 0) + 1
            sources.setdefault(uid, []).append(result_set.name)

    combined = apply_set_operation(operation, processed)
    combined = [
        uid
        for uid in combined
        if frequency[uid] >= opts.min_appearances
        and (opts.max_appearances is None or frequency[uid] <= opts.max_appearances)
    ]
    if opts.deduplicate_across:
        combined = _dedupe(combined)
    combined = _order(combined, opts, frequency, first_seen)

    all_ids = [uid for s in sets for uid in s.identifiers]
    total = len(all_ids)
    unique = len(set(all_ids))
    stats = CombinationStats(
        total_input_count=total,
        unique_input_count=unique,
        final_count=len(combined),
        duplicates_removed=total - unique,
        per_set_counts={s.name: len(s.identifiers) for s in sets},
    )

    limited = tuple(combined[: opts.limit])
    source_info: Mapping[str, tuple[str, ...]] | None = None
    if opts.include_source_info:
        source_info = {uid: tuple(sources[uid]) for uid in limited}

    log.info(
        "Combined %d sets with %s: input=%d unique=%d final=%d returned=%d",
        len(sets),
        operation.value,
        total,
        unique,
        len(combined),
        len(limited),
    )
    return CombinedResult(
        identifiers=limited,
        kind=sets[0].kind,
        operation=operation.value,
        stats=stats,
        source_info=source_info,
    )


def apply_set_operation(operation: SetOperation, identifier_lists: Sequence[Sequence[str]]) -> list[str]:
    """Apply a set operation to identifier lists, keeping first-seen order.

    The intersection of no lists is empty; the intersection of one list is
    its deduplicated content. The difference of a single list is the list.
    """
    if operation is SetOperation.UNION:
        return _dedupe(uid for identifiers in identifier_lists for uid in identifiers)
    if operation is SetOperation.INTERSECTION:
        if not identifier_lists:
            return []
        result = _dedupe(identifier_lists[0])
        for identifiers in identifier_lists[1:]:
            members = set(identifiers)
            result = [uid for uid in result if uid in members]
        return result
    if operation is SetOperation.DIFFERENCE:
        if not identifier_lists:
            return []
        excluded = {uid for identifiers in identifier_lists[1:] for uid in identifiers}
        return [uid for uid in identifier_lists[0] if uid not in excluded]
    if operation is SetOperation.SYMMETRIC_DIFFERENCE:
        counts: dict[str, int] = {}
        for identifiers in identifier_lists:
            for uid in set(identifiers):
                counts[uid] = counts.get(uid, 0) + 1
        ordered = _dedupe(uid for identifiers in identifier_lists for uid in identifiers)
        return [uid for uid in ordered if counts[uid] == 1]
    raise ValueError(f"Unsupported set operation: {operation}")


def _validate_sets(sets: Sequence[ResultSet]) -> None:
    if len(sets) < 2:
        raise ValidationError(f"At least two result sets are required for combination, got {len(sets)}")
    names = [s.name for s in sets]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValidationError(f"Result set names must be unique: {duplicates}")
    kinds = {s.kind for s in sets}
    if len(kinds) > 1:
        detail = ", ".join(f"{s.name}={s.kind.value}" for s in sets)
        raise TypeMismatchError(f"Cannot combine result sets of different kinds: {detail}")


def _dedupe(identifiers) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for uid in identifiers:
        if uid not in seen:
            seen.add(uid)
            out.append(uid)
    return out


def _order(
    identifiers: list[str],
    opts: CombineOptions,
    frequency: Mapping[str, int],
    first_seen: Mapping[str, int],
) -> list[str]:
    if opts.order_by is CombineOrder.FIRST_APPEARANCE:
        if opts.preserve_order:
            return sorted(identifiers, key=lambda uid: first_seen[uid])
        return identifiers
    if opts.order_by is CombineOrder.ALPHABETICAL:
        return sorted(identifiers, key=lambda uid: (uid.casefold(), uid))
    if opts.order_by is CombineOrder.FREQUENCY:
        return sorted(identifiers, key=lambda uid: -frequency[uid])
    if opts.order_by is CombineOrder.REVERSE_FREQUENCY:
        return sorted(identifiers, key=lambda uid: frequency[uid])
    raise ValueError(f"Unsupported order: {opts.order_by}")
