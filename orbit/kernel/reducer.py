"""
Orbit Kernel — Reducer

Pure functions: (document, event) -> document
No side effects. No IO. No clock reads. Deterministic.

Given the same starting document and the same events in the same order,
produces a structurally identical document on any device, every time.

apply_events folds in the order given. replay() sorts into canonical order
first and is what loaders and multi-device merges use.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Iterable

from orbit.kernel.document import empty_document, normalize_document
from orbit.kernel.errors import ReplayError
from orbit.kernel.events import sort_events
from orbit.kernel.registry import get_reducer
from orbit.kernel.types import Event

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def apply_event(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    """
    Apply one event and return the new document.

    The input document is never modified. Raises UnregisteredEventType for
    unknown types and the reducer's own error for invalid events.
    """
    reducer = get_reducer(event.type)
    logger.debug("apply %s (%s)", event.type, event.id)

    # Deep copy so we never mutate the input
    working = copy.deepcopy(doc)
    return reducer(working, event)


def apply_events(doc: dict[str, Any], events: Iterable[Event]) -> dict[str, Any]:
    """
    Left fold of apply_event. Fail-fast: the first error propagates and no
    partially-applied document is returned.
    """
    current = doc
    for event in events:
        current = apply_event(current, event)
    return current


def replay(events: Iterable[Event], base: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Rebuild a document by folding events in canonical order onto `base`
    (an empty document when None).

    replay(events) == apply_events(empty_document(), sort_events(events))

    A reducer failure raises ReplayError naming the offending event. No event
    is ever skipped.
    """
    doc = normalize_document(base) if base is not None else empty_document()
    for event in sort_events(events):
        try:
            doc = apply_event(doc, event)
        except Exception as e:
            logger.error("replay failed at %s (%s): %s", event.id, event.type, e)
            raise ReplayError(event.id, event.type, e) from e
    return doc
