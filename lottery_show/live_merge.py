"""Merge live registrations into the roster and the scene.

Messages arrive from the feed as JSON objects::

    {"type": "new_person", "name": "...", "phone": "..."}

While the engine holds its lock the registration is queued and replayed once
the engine emits ``unlocked``.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Tuple, Union

from PyQt5 import QtCore

from .cards import Card
from .choreographer import standard_ease, three_phase_ease
from .errors import MalformedEventError
from .formations import Vec3
from .models import Participant
from .state import LotteryStatus

if TYPE_CHECKING:  # pragma: no cover
    from .lifecycle import DrawEngine

logger = logging.getLogger(__name__)

__all__ = ["NEW_PERSON", "RegistrationEvent", "parse_event", "LiveMergeAdapter"]

NEW_PERSON = "new_person"

Payload = Union[str, bytes, bytearray, Mapping[str, Any]]

# Off-screen start of a card flying into the scene.
FLY_IN_X = 3000.0
FLY_IN_SPREAD = 500.0


class RegistrationEvent:
    __slots__ = ("name", "phone")

    def __init__(self, name: str, phone: str) -> None:
        self.name = name
        self.phone = phone

    def __repr__(self) -> str:
        return f"RegistrationEvent(name={self.name!r}, phone={self.phone!r})"


def parse_event(payload: Payload) -> Tuple[str, Optional[RegistrationEvent]]:
    """Decode ``payload`` into ``(type, event)``.

    ``event`` is ``None`` for message types other than ``new_person``.

    Raises
    ------
    MalformedEventError
        If the payload is not a JSON object, has no ``type`` or carries an
        unusable ``name``/``phone``.
    """

    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedEventError(f"Payload is not UTF-8: {exc}") from exc
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise MalformedEventError(f"Payload is not JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise MalformedEventError(f"Expected a JSON object, got {type(payload).__name__}")

    kind = payload.get("type")
    if not isinstance(kind, str) or not kind:
        raise MalformedEventError("Missing message type")
    if kind != NEW_PERSON:
        return kind, None

    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise MalformedEventError("new_person without a name")
    phone = payload.get("phone", "")
    if phone is None:
        phone = ""
    if isinstance(phone, bool) or not isinstance(phone, (str, int)):
        raise MalformedEventError(f"Unusable phone {phone!r}")
    return kind, RegistrationEvent(name.strip(), str(phone).strip())


class LiveMergeAdapter(QtCore.QObject):
    """Apply ``new_person`` events to the store, the cards and the formation."""

    merged = QtCore.pyqtSignal(object)

    def __init__(self, engine: "DrawEngine", parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._engine = engine
        self._pending: List[RegistrationEvent] = []
        self._closed = False
        engine.unlocked.connect(self.flush)

    @property
    def pending(self) -> List[RegistrationEvent]:
        return list(self._pending)

    def clear(self) -> None:
        """Drop queued registrations and ignore any further message."""

        self._pending = []
        self._closed = True

    def handle_message(self, payload: Payload) -> bool:
        """Handle one feed message; return ``True`` when it was merged or queued."""

        if self._closed:
            logger.debug("Live message ignored after teardown")
            return False
        try:
            kind, event = parse_event(payload)
        except MalformedEventError as exc:
            logger.warning("Dropping malformed live message: %s", exc)
            return False
        if event is None:
            logger.debug("Ignoring live message of type %r", kind)
            return False
        if self._is_duplicate(event.phone):
            logger.info("Registration for %s ignored: phone already present", event.name)
            return False
        if not self._engine.can_operate:
            self._pending.append(event)
            logger.debug("Queued registration for %s until the engine unlocks", event.name)
            return True
        self._merge(event)
        return True

    def flush(self) -> None:
        """Replay queued registrations in arrival order."""

        while self._pending and self._engine.can_operate and not self._closed:
            self._merge(self._pending.pop(0))

    def _is_duplicate(self, phone: str) -> bool:
        if not phone:
            return False
        if self._engine.store.find_by_phone(phone) is not None:
            return True
        return any(event.phone == phone for event in self._pending)

    def _merge(self, event: RegistrationEvent) -> None:
        try:
            participant = self._apply(event)
        except Exception:
            logger.exception("Failed to merge registration for %s", event.name)
            return
        if participant is not None:
            self.merged.emit(participant)

    def _fly_in_start(self) -> Vec3:
        rng = self._engine.rng
        return Vec3(
            FLY_IN_X,
            rng.uniform(-FLY_IN_SPREAD, FLY_IN_SPREAD),
            rng.uniform(-FLY_IN_SPREAD, FLY_IN_SPREAD),
        )

    def _apply(self, event: RegistrationEvent) -> Optional[Participant]:
        engine = self._engine
        store = engine.store
        # The queue may hold a phone that registered through another path meanwhile.
        if event.phone and store.find_by_phone(event.phone) is not None:
            return None
        participant = Participant.draft(store.next_participant_id(), event.name, event.phone)
        store.add_participant(participant)
        logger.info("Registered %s (%s) as participant %d", participant.name,
                    participant.phone or "no phone", participant.id)

        if engine.status == LotteryStatus.INIT:
            self._merge_table()
        else:
            self._merge_sphere(participant)
        return participant

    def _merge_table(self) -> None:
        engine = self._engine

        def _spawn(_participant: Participant, previous: Optional[Card]) -> Tuple[Vec3, Vec3]:
            if previous is None:
                return self._fly_in_start(), Vec3()
            return previous.position, previous.rotation

        engine.registry.rebuild(engine.store.participants, _spawn)
        engine.choreographer.animate(
            engine.formation_targets(engine.table_formation),
            engine.timing("flyInMs"),
            kind="table",
            easing=standard_ease,
        )

    def _merge_sphere(self, participant: Participant) -> None:
        engine = self._engine
        registry = engine.registry
        reserved = engine.round.reserved_slots
        card = registry.append(participant, self._fly_in_start())
        card.restyle("sphere")
        candidates = [index for index in range(len(registry)) if index not in reserved]
        if candidates:
            registry.swap(card.index, engine.rng.choice(candidates))
        engine.choreographer.animate(
            engine.formation_targets(engine.sphere_formation),
            engine.timing("mergeMs"),
            kind="sphere",
            easing=three_phase_ease,
            keep=reserved,
        )
