# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
"""
Configurations for the analytics consumers of the dashboards.

Each preset is the shared default configuration with the overrides from the
``presets`` section of ``realtime_analytics.yaml`` applied.
"""

from __future__ import annotations

from typing import Any

from .config_loader import load_config
from .models import AnalyticsConfig

NAMESPACE = 'realtime_analytics'


def _deep_update(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_update(result[key], value)
        else:
            result[key] = value
    return result


def available_presets(env: str = '') -> list[str]:
    return sorted(load_config(namespace=NAMESPACE, env=env).get('presets', {}))


def preset_config(
    name: str | None = None, *, filter: str | None = None, env: str = ''
) -> AnalyticsConfig:
    """
    Build the configuration for a preset.

    Parameters
    ----------
    name:
        Name of the preset, or None for the shared defaults.
    filter:
        Optional filter value, e.g., a medical specialty.
    env:
        Environment suffix of the config file. The default file is environment
        independent.
    """
    raw = load_config(namespace=NAMESPACE, env=env)
    presets = raw.pop('presets', {})
    if name is not None:
        if name not in presets:
            raise KeyError(
                f"Unknown preset {name!r}, available presets: {sorted(presets)}"
            )
        raw = _deep_update(raw, presets[name] or {})
    if filter is not None:
        raw['filter'] = filter
    return AnalyticsConfig.model_validate(raw)
