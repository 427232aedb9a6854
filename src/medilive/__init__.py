# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
# ruff: noqa: E402, F401, I

import importlib.metadata

try:
    __version__ = importlib.metadata.version(__package__ or __name__)
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

del importlib

from .core import ChangeEvent, Environment, Snapshot, merge
from .realtime import (
    AnalyticsBackend,
    AnalyticsState,
    FetchError,
    RealtimeAnalytics,
    SubscriptionOpenError,
    engagement_analytics,
    system_health_monitoring,
    user_behavior_analytics,
)

__all__ = [
    "AnalyticsBackend",
    "AnalyticsState",
    "ChangeEvent",
    "Environment",
    "FetchError",
    "RealtimeAnalytics",
    "Snapshot",
    "SubscriptionOpenError",
    "engagement_analytics",
    "merge",
    "system_health_monitoring",
    "user_behavior_analytics",
]
