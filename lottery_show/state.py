"""Lifecycle statuses and the state of the round being drawn."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Set

from .models import Participant, Prize
from .selector import WinnerSlot

__all__ = ["LotteryStatus", "StatusChange", "DrawRound"]


class LotteryStatus(IntEnum):
    INIT = 0      # table on screen, open for registrations
    READY = 1     # sphere on screen, waiting for the draw to start
    RUNNING = 2   # draw in progress
    END = 3       # winners revealed, waiting for the operator


@dataclass(frozen=True)
class StatusChange:
    previous: LotteryStatus
    current: LotteryStatus


@dataclass
class DrawRound:
    """Mutable state of the lifecycle and of the round in progress.

    ``can_operate`` is the re-entrancy lock: it is ``False`` exactly while a
    lifecycle transition animation is in flight.
    """

    status: LotteryStatus = LotteryStatus.INIT
    prize: Optional[Prize] = None
    pool: List[Participant] = field(default_factory=list)
    draw_count: int = 0
    winners: List[WinnerSlot] = field(default_factory=list)
    can_operate: bool = True

    @property
    def reserved_slots(self) -> Set[int]:
        return {winner.slot for winner in self.winners}

    def reset(self) -> None:
        """Forget the provisional round; status and lock are untouched."""

        self.prize = None
        self.pool = []
        self.draw_count = 0
        self.winners = []
