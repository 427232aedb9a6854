# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2023 Scipp contributors (https://github.com/scipp)

import logging
import os
import sys
import time
import uuid
from datetime import UTC, datetime

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _create_log_file(
    parent_dir: str, prefix: str = "medilive", header: str = ""
) -> str:
    """
    Create a new log file into the ``parent_dir`` and returns the path.
    The log file name is created based on the current ``timestamp``.
    It will add uuid if the ``time`` is not enough to create a unique name.

    Time based new log file name format
    -----------------------------------
    The name of the log file is formatted as
    ``{prefix}--{timestamp}--{human-readable-time}.log``.
    """
    cur_timestamp = round(time.time())
    h_time = datetime.fromtimestamp(cur_timestamp, tz=UTC).strftime(
        "%Y-%m-%d-%H-%M-%S"
    )
    time_based = os.path.join(parent_dir, f"{prefix}--{cur_timestamp}--{h_time}.log")

    if os.path.exists(time_based):
        new_path = os.path.join(
            parent_dir, f"{prefix}--{cur_timestamp}--{h_time}--{uuid.uuid4()}.log"
        )
    else:
        new_path = time_based

    with open(new_path, "w") as file:
        file.write(header)
        file.write("=" * 56 + "LOG START" + "=" * 56 + "\n")

    return new_path


def _create_log_root_dir(dir_path: str) -> None:
    """
    Create the directory if it does not exist.
    Raises an error if the desired path is an existing file.
    """
    if os.path.exists(dir_path) and not os.path.isdir(dir_path):
        raise FileExistsError(
            f"{dir_path} is a file. It should either not exist or be a directory."
        )
    os.makedirs(dir_path, exist_ok=True)


def configure_logging(log_level: int) -> None:
    """Configure logging for the root logger if not already configured"""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=log_level, format=LOG_FORMAT, stream=sys.stdout)


def initialize_file_handler(log_dir: str, logger: logging.Logger | None = None) -> str:
    """Additionally collect the logs of ``logger`` into a new file in ``log_dir``."""
    if logger is None:
        logger = get_logger()

    _create_log_root_dir(log_dir)
    formatter = "{asctime:25} |{levelname:8} |{name:40} |{message}"
    header = formatter.format(
        asctime="TIME", levelname="LEVEL", name="LOGGER", message="MESSAGE"
    )

    log_path = _create_log_file(parent_dir=log_dir, header=header + "\n")
    logger.info("Start collecting logs into %s", log_path)

    file_handler = logging.FileHandler(log_path)
    file_handler.setFormatter(logging.Formatter(formatter, style="{"))
    logger.addHandler(file_handler)
    return log_path


def get_logger() -> logging.Logger:
    from medilive import __name__ as medilive_name

    return logging.getLogger(medilive_name)
