"""Draw lifecycle: the controller behind the operator's controls.

The engine moves through ``INIT -> READY -> RUNNING -> END`` and back. Every
entry point returns ``True`` when it started a transition and ``False`` when
it was ignored (lock held, wrong status) or refused; refusals are reported
through :attr:`DrawEngine.guardFailed` and leave the engine untouched.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Any, Callable, List, Mapping, Optional

from PyQt5 import QtCore

from .ambient import AmbientRandomizer
from .cards import CardRegistry
from .choreographer import Choreographer, standard_ease, three_phase_ease
from .config import DEFAULTS, merge_settings, setting_float, setting_int
from .errors import CapacityError, DrawError, ExhaustedError, ResourceTeardownError
from .formations import (
    Formation,
    FormationTarget,
    GridFormation,
    SphereFormation,
    Vec3,
    compute_targets,
    compute_winner_targets,
)
from .live_merge import LiveMergeAdapter
from .models import WinRecord, now_text
from .selector import WinnerSelector
from .state import DrawRound, LotteryStatus, StatusChange
from .store import DrawStore

logger = logging.getLogger(__name__)

__all__ = ["DrawEngine"]

_BURST_GROUPS = 5


class DrawEngine(QtCore.QObject):
    """Orchestrates formations, winner selection and quota accounting.

    Parameters
    ----------
    store:
        Roster and prize source; receives the win records on commit.
    settings:
        Partial settings merged over :data:`lottery_show.config.DEFAULTS`.
    rng:
        Random source shared by the selector, the choreographer and the
        ambient shuffle.
    clock:
        Millisecond clock used by the choreographer (tests pass a fake one).
    """

    statusChanged = QtCore.pyqtSignal(object)
    guardFailed = QtCore.pyqtSignal(object)
    notice = QtCore.pyqtSignal(str)
    winnersRevealed = QtCore.pyqtSignal(list)
    unlocked = QtCore.pyqtSignal()

    def __init__(
        self,
        store: DrawStore,
        settings: Optional[Mapping[str, Any]] = None,
        *,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], float]] = None,
        parent: Optional[QtCore.QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.store = store
        self.settings = merge_settings(DEFAULTS, settings or {})
        self.rng = rng or random.Random()
        self.round = DrawRound()
        self.registry = CardRegistry()
        self.table_formation: Formation = GridFormation(
            row_count=setting_int(self.settings, "layout", "rowCount"),
            card_width=setting_float(self.settings, "layout", "cardWidth"),
            card_height=setting_float(self.settings, "layout", "cardHeight"),
            gap_x=setting_float(self.settings, "layout", "gapX"),
            gap_y=setting_float(self.settings, "layout", "gapY"),
        )
        self.sphere_formation: Formation = SphereFormation(
            radius=setting_float(self.settings, "layout", "sphereRadius"),
        )
        self.choreographer = Choreographer(
            self.registry,
            clock=clock,
            rng=self.rng,
            frame_interval_ms=setting_int(self.settings, "timing", "frameIntervalMs"),
            parent=self,
        )
        self.selector = WinnerSelector(self.rng)
        self.ambient = AmbientRandomizer(
            self.registry,
            lambda: self.store.participants,
            lambda: self.round.reserved_slots,
            interval_ms=setting_int(self.settings, "ambient", "intervalMs"),
            batch=setting_int(self.settings, "ambient", "batch"),
            rng=self.rng,
            parent=self,
        )
        self._deadline = QtCore.QTimer(self)
        self._deadline.setSingleShot(True)
        self._deadline.timeout.connect(self._on_deadline)
        self._teardown_hooks: List[Callable[[], None]] = []
        self._torn_down = False
        self.live_merge = LiveMergeAdapter(self, parent=self)

    # ------------------------------------------------------------------ state
    @property
    def status(self) -> LotteryStatus:
        return self.round.status

    @property
    def can_operate(self) -> bool:
        return self.round.can_operate

    @property
    def torn_down(self) -> bool:
        return self._torn_down

    @property
    def deadline_active(self) -> bool:
        return self._deadline.isActive()

    def timing(self, key: str) -> float:
        return setting_float(self.settings, "timing", key)

    def formation_targets(self, formation: Formation) -> List[FormationTarget]:
        return compute_targets(formation, len(self.registry))

    def _set_status(self, status: LotteryStatus) -> None:
        previous = self.round.status
        if previous == status:
            return
        self.round.status = status
        logger.info("Lottery status %s -> %s", previous.name, status.name)
        self.statusChanged.emit(StatusChange(previous, status))

    def _lock(self) -> None:
        self.round.can_operate = False

    def _unlock(self) -> None:
        self.round.can_operate = True
        self.unlocked.emit()

    def _fail(self, error: DrawError) -> None:
        logger.warning("%s: %s", type(error).__name__, error)
        self.guardFailed.emit(error)

    def _guard(self, command: str, *allowed: LotteryStatus) -> bool:
        if self._torn_down:
            self._fail(ResourceTeardownError(f"{command} called after teardown"))
            return False
        if not self.round.can_operate:
            logger.debug("%s ignored: a transition is in flight", command)
            return False
        if self.round.status not in allowed:
            logger.debug("%s ignored in status %s", command, self.round.status.name)
            return False
        return True

    def _clear_timers(self) -> None:
        self.ambient.stop()
        self._deadline.stop()

    # ------------------------------------------------------------------ boot
    def boot(self) -> None:
        """Build one card per participant and lay them out on the table."""

        if self._torn_down:
            self._fail(ResourceTeardownError("boot called after teardown"))
            return

        def _scatter(_participant, _previous):
            return (
                Vec3(
                    self.rng.uniform(-2000.0, 2000.0),
                    self.rng.uniform(-2000.0, 2000.0),
                    self.rng.uniform(-2000.0, 2000.0),
                ),
                Vec3(),
            )

        self.registry.rebuild(self.store.participants, _scatter)
        self.choreographer.animate(
            self.formation_targets(self.table_formation),
            self.timing("tableMs"),
            kind="table",
            jitter=self.timing("jitter"),
        )
        logger.info("Booted with %d participant(s)", len(self.registry))

    # ------------------------------------------------------------------ enter
    def enter(self) -> bool:
        """INIT -> READY: gather the cards into the sphere."""

        if not self._guard("enter", LotteryStatus.INIT):
            return False
        self._enter()
        return True

    def _enter(self) -> None:
        self._lock()
        self._clear_timers()
        self.ambient.start("sphere")
        self.choreographer.animate(
            self.formation_targets(self.sphere_formation),
            self.timing("enterMs"),
            kind="sphere",
            jitter=self.timing("jitter"),
            on_complete=self._on_sphere_ready,
        )

    def _on_sphere_ready(self) -> None:
        for card in self.registry:
            if card.skin is not None and card.skin.mode == "lucky":
                card.restyle("sphere")
        self.round.reset()
        self._set_status(LotteryStatus.READY)
        self._unlock()
        self.choreographer.set_spin(setting_float(self.settings, "camera", "readyDegPerSec"))

    # ------------------------------------------------------------------ start
    def start(self) -> bool:
        """READY -> RUNNING: draw this round's winners."""

        if not self._guard("start", LotteryStatus.READY):
            return False
        prize = self.store.current_prize
        try:
            if prize is None:
                raise ExhaustedError("No prize selected")
            if prize.is_used or prize.remaining <= 0:
                raise ExhaustedError(f"Prize {prize.name!r} has no remaining slots")
            quota = prize.round_quota(setting_int(self.settings, "draw", "maxPerDraw"))
            if quota <= 0:
                raise ExhaustedError(f"Prize {prize.name!r} has no remaining slots")
            pool = self.store.eligible_pool(prize)
            if len(pool) < quota:
                raise CapacityError(quota, len(pool))
            winners = self.selector.select(pool, quota, len(self.registry), set())
        except DrawError as exc:
            self._fail(exc)
            return False

        self.round.prize = prize
        self.round.pool = pool
        self.round.draw_count = quota
        self.round.winners = winners
        self.notice.emit(f"Drawing {quota} winner(s) for {prize.name}")
        self._set_status(LotteryStatus.RUNNING)
        self.choreographer.set_spin(setting_float(self.settings, "camera", "runningDegPerSec"))
        seconds = setting_float(self.settings, "draw", "autoStopSeconds")
        if seconds > 0:
            self._deadline.start(int(seconds * 1000))
        return True

    def _on_deadline(self) -> None:
        if self.round.status == LotteryStatus.RUNNING:
            logger.info("Draw deadline reached")
            self.stop()

    # ------------------------------------------------------------------ stop
    def stop(self) -> bool:
        """RUNNING -> END: fly the winners into their display slots."""

        if not self._guard("stop", LotteryStatus.RUNNING):
            return False
        self._lock()
        self._clear_timers()
        self.choreographer.settle_scene(0)

        winners = self.round.winners
        display = compute_winner_targets(
            len(winners),
            (setting_float(self.settings, "layout", "cardWidth"),
             setting_float(self.settings, "layout", "cardHeight")),
            per_row=setting_int(self.settings, "layout", "winnersPerRow"),
            depth=setting_float(self.settings, "layout", "winnerDepth"),
        )
        # Non-winners settle on the sphere, even if a merge retarget was cut short.
        targets: List[FormationTarget] = self.formation_targets(self.sphere_formation)
        for order, winner in enumerate(winners):
            targets[winner.slot] = display[order]
            self.registry[winner.slot].restyle("lucky", winner.participant)
        self.choreographer.animate(
            targets,
            self.timing("revealMs"),
            kind="reveal",
            easing=three_phase_ease,
            rotation_ms=self.timing("revealRotationMs"),
            on_complete=self._on_revealed,
        )
        return True

    def _on_revealed(self) -> None:
        self._set_status(LotteryStatus.END)
        self._unlock()
        self.winnersRevealed.emit(list(self.round.winners))

    # ------------------------------------------------------------------ continue
    def continue_round(self) -> bool:
        """END -> READY: commit the winners, then gather the sphere again."""

        if not self._guard("continue", LotteryStatus.END):
            return False
        prize = self.round.prize
        winners = list(self.round.winners)
        if prize is not None and winners:
            won_at = now_text()
            records = []
            for winner in winners:
                winner.participant.award(prize, won_at)
                records.append(WinRecord(winner.participant.id, prize.id, won_at))
            prize.commit(len(winners))
            self.store.record_wins(records)
            self.store.update_prize(prize)
            logger.info(
                "Committed %d winner(s) for %s (%d/%d used)",
                len(winners), prize.name, prize.used_count, prize.count,
            )
        self.round.reset()
        self._enter()
        return True

    # ------------------------------------------------------------------ back to the table
    def quit(self) -> bool:
        """RUNNING | END -> INIT: drop the round and return to the table."""

        if not self._guard("quit", LotteryStatus.RUNNING, LotteryStatus.END):
            return False
        self._lock()
        self._clear_timers()
        self.round.reset()
        self.choreographer.settle_scene(self.timing("sceneSettleMs"))
        self.registry.reorder(self.store.participants)
        self.registry.restyle_all("default")
        self.choreographer.animate(
            self.formation_targets(self.table_formation),
            self.timing("quitMs"),
            kind="table",
            easing=standard_ease,
            jitter=self.timing("jitter"),
            on_complete=self._on_table,
        )
        return True

    def back_to_table(self) -> bool:
        """READY -> INIT through an outward burst followed by the table."""

        if not self._guard("back_to_table", LotteryStatus.READY):
            return False
        self._lock()
        self._clear_timers()
        self.choreographer.settle_scene(self.timing("sceneSettleMs"))
        self.registry.reorder(self.store.participants)
        self.registry.restyle_all("default")

        burst: List[FormationTarget] = []
        for card in self.registry:
            length = card.position.length() or 1.0
            direction = card.position.scaled(1.0 / length)
            burst.append(
                FormationTarget(
                    Vec3(
                        card.position.x + direction.x * 1800.0,
                        card.position.y + direction.y * 1800.0,
                        card.position.z + direction.z * 1400.0,
                    ),
                    Vec3(
                        self.rng.uniform(0.0, 2.0 * math.pi),
                        self.rng.uniform(0.0, 2.0 * math.pi),
                        self.rng.uniform(0.0, 2.0 * math.pi),
                    ),
                )
            )
        step = self.timing("burstGroupDelayMs")
        delays = [self.rng.randrange(_BURST_GROUPS) * step for _ in range(len(self.registry))]
        self.choreographer.animate_chained(
            burst,
            self.formation_targets(self.table_formation),
            self.timing("burstMs"),
            self.timing("convergeMs"),
            kind="table",
            delays=delays,
            easing=three_phase_ease,
            on_complete=self._on_table,
        )
        return True

    def _on_table(self) -> None:
        self._set_status(LotteryStatus.INIT)
        self._unlock()

    # ------------------------------------------------------------------ operator
    def select_prize(self, prize_id: int) -> bool:
        """Choose the prize of the next round (INIT or READY only)."""

        if not self._guard("select_prize", LotteryStatus.INIT, LotteryStatus.READY):
            return False
        try:
            prize = self.store.select_prize(prize_id)
        except KeyError as exc:
            logger.warning("Cannot select prize %s: %s", prize_id, exc)
            return False
        self.notice.emit(f"Current prize: {prize.name} ({prize.used_count}/{prize.count})")
        return True

    def advance(self) -> bool:
        """Single-key control: move to the next lifecycle step."""

        status = self.round.status
        if status == LotteryStatus.INIT:
            return self.enter()
        if status == LotteryStatus.READY:
            return self.start()
        if status == LotteryStatus.RUNNING:
            return self.stop()
        return self.continue_round()

    def handle_operator_key(self, key: str) -> bool:
        """Map ``"space"``, ``"escape"`` and ``"b"`` to lifecycle commands."""

        key = (key or "").lower()
        if key == "space":
            return self.advance()
        if key == "escape" and self.round.status == LotteryStatus.RUNNING:
            return self.quit()
        if key == "b":
            return self.back_to_table()
        return False

    # ------------------------------------------------------------------ teardown
    def add_teardown_hook(self, callback: Callable[[], None]) -> None:
        """Register a callback (e.g. closing a feed) run once by :meth:`teardown`."""

        self._teardown_hooks.append(callback)

    def teardown(self) -> None:
        """Release timers, animations and subscriptions; safe to call twice."""

        if self._torn_down:
            logger.debug("teardown called again; nothing to release")
            return
        self._torn_down = True
        self._clear_timers()
        self.choreographer.stop()
        self.live_merge.clear()
        hooks, self._teardown_hooks = self._teardown_hooks, []
        for hook in hooks:
            try:
                hook()
            except Exception:
                logger.exception("Teardown hook %r failed", hook)
        logger.info("Engine torn down")
