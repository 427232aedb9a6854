# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)

from .backend import AnalyticsBackend, ChannelHandle
from .coordinator import (
    AnalyticsState,
    RealtimeAnalytics,
    engagement_analytics,
    system_health_monitoring,
    user_behavior_analytics,
)
from .errors import FetchError, SubscriptionOpenError
from .fetcher import DataFetcher
from .health import ConnectionHealthReporter
from .subscription import SubscriptionManager, SubscriptionState
from .visibility import Visibility, VisibilityGate

__all__ = [
    'AnalyticsBackend',
    'AnalyticsState',
    'ChannelHandle',
    'ConnectionHealthReporter',
    'DataFetcher',
    'FetchError',
    'RealtimeAnalytics',
    'SubscriptionManager',
    'SubscriptionOpenError',
    'SubscriptionState',
    'Visibility',
    'VisibilityGate',
    'engagement_analytics',
    'system_health_monitoring',
    'user_behavior_analytics',
]
