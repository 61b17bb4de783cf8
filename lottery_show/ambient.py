"""Cosmetic reshuffle of card faces while the sphere is on screen."""

from __future__ import annotations

import logging
import random
from typing import Callable, Collection, List, Optional, Sequence

from PyQt5 import QtCore

from .cards import CardRegistry
from .models import Participant

logger = logging.getLogger(__name__)

__all__ = ["AmbientRandomizer"]


class AmbientRandomizer(QtCore.QObject):
    """Every ``interval_ms`` reskin a few random cards with random participants.

    Only :attr:`Card.skin` changes; bindings and participant records are never
    touched. Indices returned by ``reserved`` are left alone.
    """

    reshuffled = QtCore.pyqtSignal(list)

    def __init__(
        self,
        registry: CardRegistry,
        roster: Callable[[], Sequence[Participant]],
        reserved: Callable[[], Collection[int]],
        *,
        interval_ms: int = 200,
        batch: int = 4,
        rng: Optional[random.Random] = None,
        parent: Optional[QtCore.QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._registry = registry
        self._roster = roster
        self._reserved = reserved
        self._batch = max(0, int(batch))
        self._rng = rng or random.Random()
        self.mode = "sphere"
        self._timer = QtCore.QTimer(self)
        self._timer.setInterval(max(1, int(interval_ms)))
        self._timer.timeout.connect(self.tick)

    @property
    def running(self) -> bool:
        return self._timer.isActive()

    def start(self, mode: str = "sphere") -> None:
        self.mode = mode
        if not self._timer.isActive():
            self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def tick(self) -> List[int]:
        """Reskin one batch; failures are logged and never propagate."""

        try:
            return self._reshuffle()
        except Exception:
            logger.exception("Ambient reshuffle failed")
            return []

    def _reshuffle(self) -> List[int]:
        people = list(self._roster())
        count = len(self._registry)
        if not people or count == 0:
            return []
        reserved = set(self._reserved())
        changed: List[int] = []
        for _ in range(self._batch):
            index = self._rng.randrange(count)
            if index in reserved:
                continue
            card = self._registry[index]
            card.restyle(self.mode, self._rng.choice(people))
            changed.append(index)
        if changed:
            self.reshuffled.emit(changed)
        return changed
