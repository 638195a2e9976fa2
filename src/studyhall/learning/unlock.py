"""Topic unlock resolution.

Pure function of (topics in a subject, progress records) -> state per topic.
No I/O, no clock: the same inputs always give the same map.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any, Protocol


class TopicState(str, Enum):
    LOCKED = "locked"
    AVAILABLE = "available"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class _OrderedTopic(Protocol):
    id: str
    order_index: int


def _index_progress(progress: Mapping[str, Any] | Iterable[Any]) -> dict[str, Any]:
    if isinstance(progress, Mapping):
        return dict(progress)
    return {record.topic_id: record for record in progress}


def _own_state(record: Any | None) -> TopicState | None:
    """State implied by the topic's own progress record, if any."""
    if record is None:
        return None
    if record.completed_at is not None:
        return TopicState.COMPLETED
    if (record.progress_percent or 0) > 0:
        return TopicState.IN_PROGRESS
    return None


def resolve_topic_states(
    topics: Sequence[_OrderedTopic],
    progress: Mapping[str, Any] | Iterable[Any],
) -> dict[str, TopicState]:
    """Compute locked/available/in_progress/completed for every topic of one subject.

    - completed: the record has ``completed_at``
    - in_progress: the record has progress > 0 and is not completed
    - the lowest ``order_index`` is never locked
    - any other topic is available only when its predecessor is completed

    The predecessor is the topic with the closest lower ``order_index``, so
    gaps in the numbering are tolerated. When several topics share that
    index, all of them must be completed. Array order is never used.
    """
    if not topics:
        return {}

    records = _index_progress(progress)
    own = {topic.id: _own_state(records.get(topic.id)) for topic in topics}

    by_index: dict[int, list[str]] = {}
    for topic in topics:
        by_index.setdefault(topic.order_index, []).append(topic.id)
    ordered_indices = sorted(by_index)

    previous_index = {
        index: ordered_indices[pos - 1] if pos > 0 else None
        for pos, index in enumerate(ordered_indices)
    }

    states: dict[str, TopicState] = {}
    for topic in topics:
        state = own[topic.id]
        if state is not None:
            states[topic.id] = state
            continue

        prev = previous_index[topic.order_index]
        if prev is None:
            states[topic.id] = TopicState.AVAILABLE
        elif all(own[pid] is TopicState.COMPLETED for pid in by_index[prev]):
            states[topic.id] = TopicState.AVAILABLE
        else:
            states[topic.id] = TopicState.LOCKED
    return states
