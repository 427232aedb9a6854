# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
"""
Application of change events to a :py:class:`Snapshot`.

Merging is a pure function. Applying a batch of events in one call yields the same
collections as applying the events one by one, in arrival order.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime

from ..config.models import CollectionLimits
from .events import ChangeEvent, Operation, Record, Topic
from .snapshot import Snapshot, utc_now

_COLLECTIONS = {Topic.ENGAGEMENT: 'engagement', Topic.SESSION: 'behavior'}


def _insert(
    records: tuple[Record, ...], record: Record, limit: int
) -> tuple[Record, ...]:
    # Newest first, the oldest records fall off the end.
    return (record, *records)[:limit]


def _update(records: tuple[Record, ...], record: Record) -> tuple[Record, ...]:
    record_id = record.get('id')
    if record_id is None:
        return records
    if not any(item.get('id') == record_id for item in records):
        return records
    return tuple(record if item.get('id') == record_id else item for item in records)


def _update_news(records: tuple[Record, ...], news: Record) -> tuple[Record, ...]:
    news_id = news.get('id')
    if news_id is None:
        return records

    def matches(item: Record) -> bool:
        nested = item.get('medical_news')
        return isinstance(nested, Mapping) and nested.get('id') == news_id

    if not any(matches(item) for item in records):
        return records
    return tuple(
        {**item, 'medical_news': news} if matches(item) else item for item in records
    )


def merge(
    snapshot: Snapshot,
    events: Iterable[ChangeEvent],
    *,
    limits: CollectionLimits | None = None,
    now: datetime | None = None,
) -> Snapshot:
    """
    Apply a batch of events to a snapshot.

    Parameters
    ----------
    snapshot:
        The current snapshot. It is not modified.
    events:
        Events in arrival order.
    limits:
        Maximum collection lengths. Inserts beyond the limit evict the oldest record.
    now:
        Timestamp for ``last_updated``. Defaults to the current UTC time.

    Returns
    -------
    :
        A new snapshot. Updates for unknown or missing ids leave the collections
        unchanged, only ``last_updated`` is stamped.
    """
    limits = limits or CollectionLimits()
    collections = {
        'engagement': snapshot.engagement,
        'behavior': snapshot.behavior,
    }
    caps = {'engagement': limits.engagement, 'behavior': limits.behavior}

    for event in events:
        if event.topic is Topic.NEWS:
            if event.operation is Operation.UPDATE:
                collections['engagement'] = _update_news(
                    collections['engagement'], event.payload
                )
            continue
        name = _COLLECTIONS[event.topic]
        if event.operation is Operation.INSERT:
            collections[name] = _insert(collections[name], event.payload, caps[name])
        else:
            collections[name] = _update(collections[name], event.payload)

    return Snapshot(
        engagement=collections['engagement'],
        behavior=collections['behavior'],
        health=snapshot.health,
        last_updated=now or utc_now(),
    )
