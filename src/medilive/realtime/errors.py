# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)


class FetchError(Exception):
    """Raised when a snapshot could not be loaded from the backend."""


class SubscriptionOpenError(Exception):
    """Raised when the change-feed channel could not be opened."""
