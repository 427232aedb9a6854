# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

Record = Mapping[str, Any]

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    """Change-feed topics, valued by the backend table they originate from."""

    ENGAGEMENT = 'news_user_interactions'
    SESSION = 'performance_sessions'
    NEWS = 'medical_news'


class Operation(str, Enum):
    INSERT = 'INSERT'
    UPDATE = 'UPDATE'


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """One insert or update notification from the backend change feed."""

    topic: Topic
    operation: Operation
    payload: Record

    @property
    def record_id(self) -> Any | None:
        return self.payload.get('id')

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> ChangeEvent | None:
        """
        Create an event from a raw change-feed payload.

        Parameters
        ----------
        raw:
            Mapping with keys ``table``, ``eventType`` and ``new`` as delivered by a
            Postgres change feed.

        Returns
        -------
        :
            The event, or None if the payload refers to an unknown table, an
            unsupported event type, or carries no record.
        """
        try:
            topic = Topic(raw.get('table'))
            operation = Operation(raw.get('eventType'))
        except ValueError:
            logger.debug('Ignoring unsupported change payload: %s', raw)
            return None
        record = raw.get('new')
        if not isinstance(record, Mapping):
            logger.debug('Ignoring change payload without record: %s', raw)
            return None
        return cls(topic=topic, operation=operation, payload=record)
