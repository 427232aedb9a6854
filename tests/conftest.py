# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
import pytest

from medilive.config.models import AnalyticsConfig
from medilive.fakes import FakeAnalyticsBackend, FakeScheduler


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def backend() -> FakeAnalyticsBackend:
    return FakeAnalyticsBackend(
        {
            'news_user_interactions': [],
            'performance_sessions': [],
            'performance_analytics': [],
        }
    )


@pytest.fixture
def config() -> AnalyticsConfig:
    return AnalyticsConfig()
