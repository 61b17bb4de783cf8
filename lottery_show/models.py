"""Participants, prizes and the bookkeeping records exchanged with the store."""

from __future__ import annotations

import uuid as _uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

__all__ = [
    "TIME_FORMAT",
    "now_text",
    "PrizeRecord",
    "Participant",
    "Partition",
    "Prize",
    "WinRecord",
]

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def now_text() -> str:
    return datetime.now().strftime(TIME_FORMAT)


def _as_int(value: object, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(float(str(value)))
    except (TypeError, ValueError):
        return default


@dataclass
class PrizeRecord:
    """One prize won by a participant."""

    prize_id: int
    prize_name: str
    won_at: str


@dataclass
class Participant:
    """A registrant shown on one card.

    ``phone`` is the natural key used to reject duplicate registrations.
    """

    id: int
    uid: str
    name: str
    phone: str = ""
    avatar: str = ""
    is_win: bool = False
    prizes: List[PrizeRecord] = field(default_factory=list)
    uuid: str = field(default_factory=lambda: _uuid.uuid4().hex)
    created_at: str = field(default_factory=now_text)
    updated_at: str = field(default_factory=now_text)

    @classmethod
    def draft(cls, participant_id: int, name: str, phone: Optional[str] = None) -> "Participant":
        """Return a fresh participant as created by a live registration."""

        stamp = now_text()
        return cls(
            id=participant_id,
            uid=f"U{participant_id:04d}",
            name=name,
            phone=(phone or "").strip(),
            created_at=stamp,
            updated_at=stamp,
        )

    def has_prize(self, prize_id: int) -> bool:
        return any(record.prize_id == prize_id for record in self.prizes)

    def award(self, prize: "Prize", won_at: str) -> PrizeRecord:
        record = PrizeRecord(prize.id, prize.name, won_at)
        self.prizes.append(record)
        self.is_win = True
        self.updated_at = won_at
        return record

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "uid": self.uid,
            "uuid": self.uuid,
            "name": self.name,
            "phone": self.phone,
            "avatar": self.avatar,
            "isWin": self.is_win,
            "prizeId": [record.prize_id for record in self.prizes],
            "prizeName": [record.prize_name for record in self.prizes],
            "prizeTime": [record.won_at for record in self.prizes],
            "createTime": self.created_at,
            "updateTime": self.updated_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Participant":
        ids = list(payload.get("prizeId") or [])
        names = list(payload.get("prizeName") or [])
        times = list(payload.get("prizeTime") or [])
        records = [
            PrizeRecord(
                _as_int(prize_id),
                str(names[idx]) if idx < len(names) else "",
                str(times[idx]) if idx < len(times) else "",
            )
            for idx, prize_id in enumerate(ids)
        ]
        participant_id = _as_int(payload.get("id"))
        stamp = now_text()
        return cls(
            id=participant_id,
            uid=str(payload.get("uid") or f"U{participant_id:04d}"),
            name=str(payload.get("name") or ""),
            phone=str(payload.get("phone") or "").strip(),
            avatar=str(payload.get("avatar") or ""),
            is_win=bool(payload.get("isWin", bool(records))),
            prizes=records,
            uuid=str(payload.get("uuid") or _uuid.uuid4().hex),
            created_at=str(payload.get("createTime") or stamp),
            updated_at=str(payload.get("updateTime") or stamp),
        )


@dataclass
class Partition:
    """Sub-quota of a prize; partitions are consumed in order."""

    count: int
    used_count: int = 0

    @property
    def remaining(self) -> int:
        return max(0, self.count - self.used_count)

    @property
    def exhausted(self) -> bool:
        return self.used_count >= self.count


@dataclass
class Prize:
    """A prize with ``count`` winner slots.

    ``is_all`` widens the eligible pool to every participant who does not
    already hold *this* prize; otherwise only participants without any prize
    may win it.
    """

    id: int
    name: str
    count: int
    used_count: int = 0
    is_used: bool = False
    is_all: bool = False
    partitions: List[Partition] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.count = max(0, int(self.count))
        self.used_count = max(0, min(int(self.used_count), self.count))
        self.is_used = self.used_count >= self.count

    @property
    def remaining(self) -> int:
        return self.count - self.used_count

    def active_partition(self) -> Optional[Partition]:
        """Return the first partition that still has room."""

        for partition in self.partitions:
            if not partition.exhausted:
                return partition
        return None

    def round_quota(self, max_per_draw: int) -> int:
        """Number of winners drawn by the next round.

        The active partition takes precedence over the total remaining count,
        and both are capped by ``max_per_draw``.
        """

        quota = self.remaining
        partition = self.active_partition()
        if partition is not None:
            quota = min(partition.remaining, quota)
        if max_per_draw > 0:
            quota = min(quota, max_per_draw)
        return max(0, quota)

    def commit(self, drawn: int) -> None:
        """Account for ``drawn`` winners of a finished round."""

        if drawn <= 0:
            return
        partition = self.active_partition()
        if partition is not None:
            partition.used_count = min(partition.count, partition.used_count + drawn)
        self.used_count = min(self.count, self.used_count + drawn)
        self.is_used = self.used_count >= self.count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "count": self.count,
            "isUsedCount": self.used_count,
            "isUsed": self.is_used,
            "isAll": self.is_all,
            "separateCount": {
                "enable": bool(self.partitions),
                "countList": [
                    {"count": part.count, "isUsedCount": part.used_count}
                    for part in self.partitions
                ],
            },
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Prize":
        separate = payload.get("separateCount") or {}
        partitions: List[Partition] = []
        if isinstance(separate, Mapping) and separate.get("enable"):
            for entry in separate.get("countList") or []:
                if not isinstance(entry, Mapping):
                    continue
                partitions.append(
                    Partition(_as_int(entry.get("count")), _as_int(entry.get("isUsedCount")))
                )
        return cls(
            id=_as_int(payload.get("id")),
            name=str(payload.get("name") or ""),
            count=_as_int(payload.get("count")),
            used_count=_as_int(payload.get("isUsedCount")),
            is_all=bool(payload.get("isAll", False)),
            partitions=partitions,
        )


@dataclass(frozen=True)
class WinRecord:
    """Outbound "participant won prize" request sent to the store."""

    participant_id: int
    prize_id: int
    won_at: str
