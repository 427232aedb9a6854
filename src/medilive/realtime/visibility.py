# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol


class Visibility(Enum):
    VISIBLE = 'visible'
    HIDDEN = 'hidden'


class VisibilityListener(Protocol):
    def on_hidden(self) -> None: ...

    def on_visible(self) -> None: ...


class VisibilityGate:
    """Tracks whether the UI is shown and notifies listeners on transitions."""

    def __init__(self, visible: bool = True) -> None:
        self._state = Visibility.VISIBLE if visible else Visibility.HIDDEN
        self._listeners: list[VisibilityListener] = []
        self._logger = logging.getLogger(__name__)

    @property
    def state(self) -> Visibility:
        return self._state

    @property
    def visible(self) -> bool:
        return self._state is Visibility.VISIBLE

    def add_listener(self, listener: VisibilityListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: VisibilityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_visible(self, visible: bool) -> None:
        """Update the visibility. Listeners are only notified on actual changes."""
        state = Visibility.VISIBLE if visible else Visibility.HIDDEN
        if state is self._state:
            return
        self._state = state
        self._logger.info('UI is now %s', state.value)
        for listener in list(self._listeners):
            if visible:
                listener.on_visible()
            else:
                listener.on_hidden()
