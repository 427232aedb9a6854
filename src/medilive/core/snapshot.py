# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .events import Record


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    Materialized view of the analytics data.

    Snapshots are never modified. Every update produces a new snapshot, which
    shares unchanged collections with its predecessor.
    """

    engagement: tuple[Record, ...] = ()
    behavior: tuple[Record, ...] = ()
    health: tuple[Record, ...] = ()
    last_updated: datetime = field(default_factory=utc_now)

    @classmethod
    def from_records(
        cls,
        *,
        engagement: Iterable[Record] = (),
        behavior: Iterable[Record] = (),
        health: Iterable[Record] = (),
        last_updated: datetime | None = None,
    ) -> Snapshot:
        return cls(
            engagement=tuple(engagement),
            behavior=tuple(behavior),
            health=tuple(health),
            last_updated=last_updated or utc_now(),
        )

    def same_content(self, other: Snapshot) -> bool:
        """Compare collections, ignoring the update timestamp."""
        return (
            self.engagement == other.engagement
            and self.behavior == other.behavior
            and self.health == other.health
        )
