# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
from __future__ import annotations

import logging

from ..config.models import AnalyticsConfig, CollectionQuery
from ..core.events import Record
from ..core.snapshot import Snapshot, utc_now
from .backend import AnalyticsBackend
from .errors import FetchError


class DataFetcher:
    """
    Loads complete snapshots from the backend query layer.

    Each collection of the snapshot is loaded by one query, newest records first.
    """

    def __init__(
        self,
        backend: AnalyticsBackend,
        config: AnalyticsConfig,
        logger: logging.Logger | None = None,
    ) -> None:
        self._backend = backend
        self._queries = {
            'engagement': config.engagement,
            'behavior': config.behavior,
            'health': config.health,
        }
        self._logger = logger or logging.getLogger(__name__)

    async def fetch_snapshot(
        self, filter: str | None = None, previous: Snapshot | None = None
    ) -> Snapshot:
        """
        Fetch a new snapshot.

        Parameters
        ----------
        filter:
            Value matched against the filter column of collections that define one.
        previous:
            Snapshot providing fallback contents for optional collections whose
            query fails.

        Raises
        ------
        FetchError:
            If the query of a required collection fails.
        """
        previous = previous or Snapshot()
        collections: dict[str, tuple[Record, ...]] = {}
        for name, query in self._queries.items():
            try:
                collections[name] = await self._fetch(query, filter)
            except Exception as e:
                if query.required:
                    raise FetchError(
                        f"Failed to fetch {name} data from {query.table}: {e}"
                    ) from e
                self._logger.warning(
                    'Failed to fetch %s data from %s, keeping previous data: %s',
                    name,
                    query.table,
                    e,
                )
                collections[name] = getattr(previous, name)
        return Snapshot(**collections, last_updated=utc_now())

    async def _fetch(
        self, query: CollectionQuery, filter: str | None
    ) -> tuple[Record, ...]:
        filters = None
        if filter is not None and query.filter_column is not None:
            filters = {query.filter_column: filter}
        records = await self._backend.query(
            query.table,
            filters=filters,
            order_by=query.order_by,
            descending=True,
            limit=query.limit,
        )
        return tuple(records or ())
