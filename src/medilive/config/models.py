# SPDX-FileCopyrightText: 2025 Scipp contributors (https://github.com/scipp)
# SPDX-License-Identifier: BSD-3-Clause
"""
Models for the configuration of the realtime analytics coordinator.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class CollectionQuery(BaseModel):
    """Query used to (re)load one snapshot collection from the backend."""

    table: str = Field(description="Backend table to query.")
    order_by: str = Field(description="Timestamp column, sorted descending.")
    limit: int = Field(gt=0, description="Maximum number of rows to fetch.")
    filter_column: str | None = Field(
        default=None,
        description="Column matched against the consumer filter, if any.",
    )
    required: bool = Field(
        default=False,
        description="If True, a failing query fails the whole fetch. Otherwise the "
        "collection keeps its previous contents.",
    )


class CollectionLimits(BaseModel):
    """Maximum lengths of the snapshot collections when applying inserts."""

    engagement: int = Field(default=100, gt=0)
    behavior: int = Field(default=50, gt=0)


class ThrottleSettings(BaseModel):
    """Flush intervals of the event buffer and slow-network backpressure."""

    desktop_interval_s: float = Field(default=3.0, gt=0)
    mobile_interval_s: float = Field(default=15.0, gt=0)
    slow_mobile_interval_s: float = Field(default=20.0, gt=0)
    backpressure_threshold: int = Field(
        default=5, gt=0, description="Buffer length above which events are dropped."
    )
    backpressure_keep: int = Field(
        default=3, gt=0, description="Number of most recent events kept on overflow."
    )

    @model_validator(mode='after')
    def validate_ordering(self) -> ThrottleSettings:
        if not (
            self.desktop_interval_s
            < self.mobile_interval_s
            < self.slow_mobile_interval_s
        ):
            raise ValueError(
                'Flush intervals must increase from desktop to mobile to slow mobile'
            )
        if self.backpressure_keep > self.backpressure_threshold:
            raise ValueError('backpressure_keep must not exceed backpressure_threshold')
        return self


class VisibilitySettings(BaseModel):
    """Delays before re-fetching after the UI becomes visible again."""

    settle_delay_s: float = Field(default=0.5, ge=0)
    slow_mobile_settle_delay_s: float = Field(default=2.0, ge=0)


class TopicBinding(BaseModel):
    """One change-feed registration on the multiplexed channel."""

    event: str = Field(description="'INSERT', 'UPDATE' or '*' for all events.")
    schema_name: str = Field(default='public', alias='schema')
    table: str

    model_config = {'populate_by_name': True}


class SubscriptionSettings(BaseModel):
    enabled: bool = True
    channel_name: str = 'analytics-master'
    health_check_interval_s: float = Field(default=10.0, gt=0)
    bindings: list[TopicBinding] = Field(
        default_factory=lambda: [
            TopicBinding(event='*', table='news_user_interactions'),
            TopicBinding(event='INSERT', table='performance_sessions'),
            TopicBinding(event='UPDATE', table='medical_news'),
        ]
    )


class AnalyticsConfig(BaseModel):
    """Complete configuration of one coordinator instance."""

    engagement: CollectionQuery = Field(
        default_factory=lambda: CollectionQuery(
            table='news_user_interactions',
            order_by='created_at',
            limit=100,
            filter_column='specialty',
            required=True,
        )
    )
    behavior: CollectionQuery = Field(
        default_factory=lambda: CollectionQuery(
            table='performance_sessions', order_by='timestamp', limit=50
        )
    )
    health: CollectionQuery = Field(
        default_factory=lambda: CollectionQuery(
            table='performance_analytics', order_by='date', limit=30
        )
    )
    limits: CollectionLimits = Field(default_factory=CollectionLimits)
    throttle: ThrottleSettings = Field(default_factory=ThrottleSettings)
    visibility: VisibilitySettings = Field(default_factory=VisibilitySettings)
    subscription: SubscriptionSettings = Field(default_factory=SubscriptionSettings)
    refresh_interval_s: float | None = Field(
        default=None,
        gt=0,
        description="Polling interval for full re-fetches. None disables polling.",
    )
    filter: str | None = Field(
        default=None, description="Value matched against filter columns."
    )
