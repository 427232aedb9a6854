# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)

from .models import (
    AnalyticsConfig,
    CollectionLimits,
    CollectionQuery,
    SubscriptionSettings,
    ThrottleSettings,
    TopicBinding,
    VisibilitySettings,
)
from .presets import available_presets, preset_config

__all__ = [
    'AnalyticsConfig',
    'CollectionLimits',
    'CollectionQuery',
    'SubscriptionSettings',
    'ThrottleSettings',
    'TopicBinding',
    'VisibilitySettings',
    'available_presets',
    'preset_config',
]
