"""Diff-based marker reconciliation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Set, Tuple

from audioguide.domain.models import Attraction, AttractionId

from .collaborators import MarkerLayer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    """Ids grouped by the decision taken for them, in source order."""

    added: Tuple[AttractionId, ...] = ()
    removed: Tuple[AttractionId, ...] = ()
    untouched: Tuple[AttractionId, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


def _unique(attractions: Iterable[Attraction]) -> List[Attraction]:
    seen: Set[AttractionId] = set()
    unique: List[Attraction] = []
    for attraction in attractions:
        if attraction.id not in seen:
            seen.add(attraction.id)
            unique.append(attraction)
    return unique


def diff_attractions(
    previous: Iterable[Attraction],
    next_attractions: Iterable[Attraction],
) -> ReconcileResult:
    """Compare two attraction lists by id only; repeated ids count once."""

    previous = _unique(previous)
    next_attractions = _unique(next_attractions)
    previous_ids = {attraction.id for attraction in previous}
    next_ids = {attraction.id for attraction in next_attractions}

    removed = tuple(a.id for a in previous if a.id not in next_ids)
    added = tuple(a.id for a in next_attractions if a.id not in previous_ids)
    untouched = tuple(a.id for a in next_attractions if a.id in previous_ids)
    return ReconcileResult(added=added, removed=removed, untouched=untouched)


class MarkerReconciler:
    """Apply add/remove decisions to a marker layer; leave shared ids alone."""

    def __init__(self, layer: MarkerLayer) -> None:
        self._layer = layer

    def reconcile(
        self,
        previous: Iterable[Attraction],
        next_attractions: Iterable[Attraction],
        *,
        selected_id: Optional[AttractionId] = None,
        on_click: Optional[Callable[[Attraction], object]] = None,
    ) -> ReconcileResult:
        next_attractions = list(next_attractions)
        result = diff_attractions(previous, next_attractions)

        for attraction_id in result.removed:
            self._layer.set_generating(attraction_id, False)
            self._layer.set_selected(attraction_id, False)
            self._layer.remove_marker(attraction_id)

        added = set(result.added)
        for attraction in next_attractions:
            if attraction.id in added:
                added.discard(attraction.id)
                self._layer.add_marker(attraction, on_click)

        if selected_id is not None and any(a.id == selected_id for a in next_attractions):
            self._layer.set_selected(selected_id, True)

        if result.changed:
            logger.debug(
                "Markers reconciled: +%d -%d =%d",
                len(result.added),
                len(result.removed),
                len(result.untouched),
            )
        return result


__all__ = ["ReconcileResult", "diff_attractions", "MarkerReconciler"]
