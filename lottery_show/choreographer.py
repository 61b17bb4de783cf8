"""Card interpolations, scene rotation and the render tick.

The choreographer only owns transforms: each tick it moves card positions and
rotations towards their targets and advances the scene rotation, then emits
:attr:`Choreographer.frameAdvanced`. Whatever draws the cards subscribes to
that signal and reads the registry.
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass
from typing import Callable, Collection, List, Optional, Sequence

from PyQt5 import QtCore

from .cards import Card, CardRegistry
from .formations import FormationTarget, Vec3, lerp

logger = logging.getLogger(__name__)

Easing = Callable[[float], float]

__all__ = [
    "Easing",
    "standard_ease",
    "three_phase_ease",
    "Transition",
    "Choreographer",
]

_TAU = 2.0 * math.pi
_EXPO = QtCore.QEasingCurve(QtCore.QEasingCurve.InOutExpo)


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def standard_ease(progress: float) -> float:
    """Exponential in-out ease used by routine transitions."""

    return float(_EXPO.valueForProgress(clamp01(progress)))


def three_phase_ease(progress: float) -> float:
    """Slow start over the first 20%, linear middle, slow end over the last 20%."""

    k = clamp01(progress)
    if k <= 0.2:
        return 2.0 * k * k * k
    if k <= 0.8:
        return 0.08 + 0.84 * ((k - 0.2) / 0.6)
    tail = (k - 0.8) / 0.2
    return 0.92 + 0.08 * (1.0 - (1.0 - tail) ** 3)


@dataclass
class _Tween:
    card: Card
    channel: str
    target: Vec3
    duration: float
    easing: Easing
    begin: float
    follow: Optional["_Tween"] = None
    origin: Optional[Vec3] = None

    def step(self, now: float) -> Optional["_Tween"]:
        """Advance to ``now``; return the tween still running on this track."""

        if now < self.begin:
            return self
        if self.origin is None:
            self.origin = getattr(self.card, self.channel)
        if self.duration <= 0:
            progress = 1.0
        else:
            progress = clamp01((now - self.begin) / self.duration)
        if progress < 1.0:
            setattr(self.card, self.channel, lerp(self.origin, self.target, self.easing(progress)))
            return self
        setattr(self.card, self.channel, self.target)
        if self.follow is None:
            return None
        self.follow.begin = self.begin + self.duration
        return self.follow.step(now)


class Transition:
    """A set of tweens that completes as a whole."""

    def __init__(self, kind: str, on_complete: Optional[Callable[[], None]] = None) -> None:
        self.kind = kind
        self.on_complete = on_complete
        self.cancelled = False
        self.finished = False
        self._tracks: List[_Tween] = []

    def add(self, tween: _Tween) -> None:
        self._tracks.append(tween)

    @property
    def tween_count(self) -> int:
        return len(self._tracks)

    def step(self, now: float) -> bool:
        running: List[_Tween] = []
        for tween in self._tracks:
            current = tween.step(now)
            if current is not None:
                running.append(current)
        self._tracks = running
        return not running

    def __repr__(self) -> str:
        return f"Transition({self.kind!r}, tracks={len(self._tracks)}, finished={self.finished})"


class Choreographer(QtCore.QObject):
    """Schedules card transitions and drives the frame tick."""

    frameAdvanced = QtCore.pyqtSignal()
    idle = QtCore.pyqtSignal()

    def __init__(
        self,
        registry: CardRegistry,
        *,
        clock: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
        frame_interval_ms: int = 16,
        parent: Optional[QtCore.QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._registry = registry
        self._start_time = time.perf_counter()
        self._clock = clock or self._perf_ms
        self._rng = rng or random.Random()
        self._transitions: List[Transition] = []
        self.scene_rotation = 0.0
        self._spin_deg_per_sec = 0.0
        self._scene_from = 0.0
        self._scene_begin = 0.0
        self._scene_duration = 0.0
        self._scene_settling = False
        self._last_tick = self._clock()
        self._running = False
        self._timer = QtCore.QTimer(self)
        self._timer.setInterval(max(1, int(frame_interval_ms)))
        self._timer.timeout.connect(self.tick)

    # ------------------------------------------------------------------ helpers
    def _perf_ms(self) -> float:
        return (time.perf_counter() - self._start_time) * 1000.0

    @property
    def now_ms(self) -> float:
        return self._clock()

    @property
    def busy(self) -> bool:
        """``True`` while a card transition is in flight."""

        return bool(self._transitions)

    @property
    def active(self) -> bool:
        return self.busy or self._scene_settling or abs(self._spin_deg_per_sec) > 1e-9

    @property
    def active_kind(self) -> Optional[str]:
        return self._transitions[0].kind if self._transitions else None

    @property
    def spin_rate(self) -> float:
        return self._spin_deg_per_sec

    @property
    def timer_active(self) -> bool:
        return self._timer.isActive()

    def _ensure_running(self) -> None:
        if not self._running:
            self._running = True
            self._last_tick = self.now_ms
        if not self._timer.isActive():
            self._timer.start()

    def _durations(self, duration_ms: float, jitter: float) -> float:
        if jitter <= 0.0:
            return float(duration_ms)
        return float(duration_ms) * (1.0 - clamp01(jitter) * self._rng.random())

    # ------------------------------------------------------------------ API
    def animate(
        self,
        targets: Sequence[Optional[FormationTarget]],
        duration_ms: float,
        *,
        kind: str,
        easing: Easing = standard_ease,
        jitter: float = 0.0,
        rotation_ms: Optional[float] = None,
        keep: Collection[int] = (),
        on_complete: Optional[Callable[[], None]] = None,
    ) -> Transition:
        """Move every card to ``targets[card.index]``.

        In-flight card transitions are cancelled first. Cards listed in
        ``keep`` or without a target stay where they are. With ``jitter`` each
        card gets its own duration in ``[duration * (1 - jitter), duration]``.
        ``on_complete`` fires once, from :meth:`tick`, after the last card
        arrives.
        """

        self.cancel_all()
        now = self.now_ms
        transition = Transition(kind, on_complete)
        rotation_ms = duration_ms if rotation_ms is None else rotation_ms
        for card in self._registry:
            if card.index in keep or card.index >= len(targets):
                continue
            target = targets[card.index]
            if target is None:
                continue
            card.scale = target.scale
            transition.add(
                _Tween(card, "position", target.position,
                       self._durations(duration_ms, jitter), easing, now)
            )
            transition.add(
                _Tween(card, "rotation", target.rotation,
                       self._durations(rotation_ms, jitter), easing, now)
            )
        self._transitions.append(transition)
        self._ensure_running()
        logger.debug("Started %s transition over %d tweens", kind, transition.tween_count)
        return transition

    def animate_chained(
        self,
        first: Sequence[FormationTarget],
        second: Sequence[FormationTarget],
        first_ms: float,
        second_ms: float,
        *,
        kind: str,
        delays: Sequence[float] = (),
        easing: Easing = three_phase_ease,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> Transition:
        """Two-phase transition: every card goes to ``first`` then ``second``.

        ``delays[card.index]`` postpones the start of a card's first phase.
        """

        self.cancel_all()
        now = self.now_ms
        transition = Transition(kind, on_complete)
        for card in self._registry:
            if card.index >= len(first) or card.index >= len(second):
                continue
            delay = float(delays[card.index]) if card.index < len(delays) else 0.0
            burst, settle = first[card.index], second[card.index]
            card.scale = settle.scale
            for channel, a, b in (
                ("position", burst.position, settle.position),
                ("rotation", burst.rotation, settle.rotation),
            ):
                follow = _Tween(card, channel, b, second_ms, easing, 0.0)
                transition.add(_Tween(card, channel, a, first_ms, easing, now + delay, follow))
        self._transitions.append(transition)
        self._ensure_running()
        return transition

    def cancel_all(self) -> None:
        """Drop in-flight card transitions without firing their callbacks."""

        for transition in self._transitions:
            transition.cancelled = True
        if self._transitions:
            logger.debug("Cancelled %d transition(s)", len(self._transitions))
        self._transitions = []

    def set_spin(self, deg_per_sec: float) -> None:
        """Rotate the scene continuously around Y; ``0`` stops the rotation."""

        self._spin_deg_per_sec = float(deg_per_sec)
        if abs(self._spin_deg_per_sec) > 1e-9:
            self._scene_settling = False
            self._ensure_running()

    def settle_scene(self, duration_ms: float) -> None:
        """Stop spinning and bring the scene rotation back to the front."""

        self._spin_deg_per_sec = 0.0
        self.scene_rotation = math.remainder(self.scene_rotation, _TAU)
        self._scene_from = self.scene_rotation
        self._scene_begin = self.now_ms
        self._scene_duration = max(0.0, float(duration_ms))
        self._scene_settling = True
        self._ensure_running()

    def stop(self) -> None:
        """Cancel everything and stop the frame timer."""

        self.cancel_all()
        self._spin_deg_per_sec = 0.0
        self._scene_settling = False
        self._timer.stop()
        self._running = False

    # ------------------------------------------------------------------ tick
    def _advance_scene(self, now: float, dt: float) -> None:
        if abs(self._spin_deg_per_sec) > 1e-9:
            self.scene_rotation = (self.scene_rotation + math.radians(self._spin_deg_per_sec) * dt) % _TAU
            return
        if not self._scene_settling:
            return
        if self._scene_duration <= 0:
            progress = 1.0
        else:
            progress = clamp01((now - self._scene_begin) / self._scene_duration)
        self.scene_rotation = self._scene_from * (1.0 - standard_ease(progress))
        if progress >= 1.0:
            self.scene_rotation = 0.0
            self._scene_settling = False

    def tick(self, now: Optional[float] = None) -> None:
        """Advance all interpolations to ``now`` and notify subscribers."""

        now = self.now_ms if now is None else float(now)
        dt = min(0.1, max(0.0, (now - self._last_tick) / 1000.0))
        self._last_tick = now
        self._advance_scene(now, dt)

        finished: List[Transition] = []
        for transition in list(self._transitions):
            if transition.cancelled:
                continue
            if transition.step(now):
                finished.append(transition)
        for transition in finished:
            transition.finished = True
            if transition in self._transitions:
                self._transitions.remove(transition)

        self.frameAdvanced.emit()

        for transition in finished:
            if transition.cancelled or transition.on_complete is None:
                continue
            transition.on_complete()

        if not self.active and self._running:
            self._timer.stop()
            self._running = False
            self.idle.emit()
