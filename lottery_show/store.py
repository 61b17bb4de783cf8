"""Roster and prize storage used by the engine.

The engine only sees :class:`DrawStore`. :class:`MemoryStore` keeps everything
in process; :class:`JsonStore` additionally writes the roster, the prizes and
the win log as JSON documents in a directory.
"""

from __future__ import annotations

import abc
import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

from .config import HOME_DIR
from .models import Participant, Prize, WinRecord

logger = logging.getLogger(__name__)

__all__ = ["DrawStore", "MemoryStore", "JsonStore"]


class DrawStore(abc.ABC):
    """Source of truth for participants and prizes."""

    @property
    @abc.abstractmethod
    def participants(self) -> List[Participant]:
        """All participants in registration order (live list)."""

    @property
    @abc.abstractmethod
    def prizes(self) -> List[Prize]:
        """Prize definitions in display order (live list)."""

    @property
    @abc.abstractmethod
    def current_prize(self) -> Optional[Prize]:
        """Prize the next round is drawn for."""

    @abc.abstractmethod
    def select_prize(self, prize_id: int) -> Prize: ...

    @abc.abstractmethod
    def add_participant(self, participant: Participant) -> None: ...

    @abc.abstractmethod
    def record_wins(self, records: Sequence[WinRecord]) -> None:
        """Persist "participant won prize" records of a committed round."""

    @abc.abstractmethod
    def update_prize(self, prize: Prize) -> None:
        """Persist the usage counters of ``prize``."""

    # ------------------------------------------------------------------ views
    def find_by_phone(self, phone: str) -> Optional[Participant]:
        phone = (phone or "").strip()
        if not phone:
            return None
        for participant in self.participants:
            if (participant.phone or "").strip() == phone:
                return participant
        return None

    def not_won(self) -> List[Participant]:
        return [person for person in self.participants if not person.prizes]

    def not_won_prize(self, prize_id: int) -> List[Participant]:
        return [person for person in self.participants if not person.has_prize(prize_id)]

    def eligible_pool(self, prize: Prize) -> List[Participant]:
        """Participants who may win ``prize`` (a fresh list)."""

        return self.not_won_prize(prize.id) if prize.is_all else self.not_won()

    def next_participant_id(self) -> int:
        return max((person.id for person in self.participants), default=0) + 1


class MemoryStore(DrawStore):
    def __init__(
        self,
        participants: Iterable[Participant] = (),
        prizes: Iterable[Prize] = (),
    ) -> None:
        self._participants: List[Participant] = list(participants)
        self._prizes: List[Prize] = list(prizes)
        self._current_id: Optional[int] = self._prizes[0].id if self._prizes else None
        self.win_log: List[WinRecord] = []

    @property
    def participants(self) -> List[Participant]:
        return self._participants

    @property
    def prizes(self) -> List[Prize]:
        return self._prizes

    @property
    def current_prize(self) -> Optional[Prize]:
        for prize in self._prizes:
            if prize.id == self._current_id:
                return prize
        return None

    def select_prize(self, prize_id: int) -> Prize:
        for prize in self._prizes:
            if prize.id == prize_id:
                self._current_id = prize_id
                return prize
        raise KeyError(f"Unknown prize {prize_id}")

    def add_participant(self, participant: Participant) -> None:
        self._participants.append(participant)

    def record_wins(self, records: Sequence[WinRecord]) -> None:
        self.win_log.extend(records)

    def update_prize(self, prize: Prize) -> None:
        if prize not in self._prizes:
            raise KeyError(f"Unknown prize {prize.id}")


def _ensure_directory(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _read_list(path: Path) -> List[Any]:
    if not path.exists():
        return []
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable %s: %s", path, exc)
        return []
    return payload if isinstance(payload, list) else []


class JsonStore(MemoryStore):
    """:class:`MemoryStore` mirrored to ``participants.json``, ``prizes.json``
    and ``wins.json`` in ``directory``."""

    def __init__(self, directory: Optional[Path | str] = None) -> None:
        self.path = _ensure_directory(Path(directory) if directory is not None else HOME_DIR / "data")
        participants = [
            Participant.from_dict(entry)
            for entry in _read_list(self.path / "participants.json")
            if isinstance(entry, dict)
        ]
        prizes = [
            Prize.from_dict(entry)
            for entry in _read_list(self.path / "prizes.json")
            if isinstance(entry, dict)
        ]
        super().__init__(participants, prizes)
        for entry in _read_list(self.path / "wins.json"):
            if not isinstance(entry, dict):
                continue
            try:
                self.win_log.append(
                    WinRecord(int(entry["participantId"]), int(entry["prizeId"]), str(entry["time"]))
                )
            except (KeyError, TypeError, ValueError):
                continue

    def _write(self, name: str, payload: Any) -> None:
        target = self.path / name
        tmp = target.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(target)

    def save(self) -> None:
        self._write("participants.json", [person.to_dict() for person in self._participants])
        self._write("prizes.json", [prize.to_dict() for prize in self._prizes])
        self._write(
            "wins.json",
            [
                {"participantId": rec.participant_id, "prizeId": rec.prize_id, "time": rec.won_at}
                for rec in self.win_log
            ],
        )

    def add_prize(self, prize: Prize) -> None:
        self._prizes.append(prize)
        if self._current_id is None:
            self._current_id = prize.id
        self.save()

    def add_participant(self, participant: Participant) -> None:
        super().add_participant(participant)
        self.save()

    def record_wins(self, records: Sequence[WinRecord]) -> None:
        super().record_wins(records)
        self.save()

    def update_prize(self, prize: Prize) -> None:
        super().update_prize(prize)
        self.save()
