# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2024 Scipp contributors (https://github.com/scipp)
import os
from importlib import resources

import yaml


def load_config(*, namespace: str, env: str | None = None) -> dict:
    """Load configuration based on environment.

    Parameters
    ----------
    namespace:
        Configuration namespace (e.g. 'realtime_analytics')
    env:
        Environment name ('dev', 'staging', 'prod').
        Defaults to value of MEDILIVE_ENV environment variable. Set to an empty string
        if the config file is independent of an environment.
    """
    env = env if env is not None else os.getenv('MEDILIVE_ENV', 'dev')
    env = f'_{env}' if env else ''
    config_file = f'{namespace}{env}.yaml'

    config_path = resources.files('medilive.config.defaults')
    try:
        with config_path.joinpath(config_file).open() as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(
            f"{config_file} not found in config defaults"
        ) from None
