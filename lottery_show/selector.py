"""Winner sampling and reserved display slot assignment."""

from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass
from typing import List, MutableSequence, Optional, Sequence, Set

from .errors import CapacityError
from .models import Participant

__all__ = ["WinnerSlot", "sample_winners", "slot_for", "WinnerSelector"]


@dataclass(frozen=True)
class WinnerSlot:
    """A provisional winner and the card index reserved for its reveal."""

    participant: Participant
    slot: int


def sample_winners(pool: Sequence[Participant], k: int, rng: random.Random) -> List[Participant]:
    """Return ``k`` distinct participants drawn uniformly from ``pool``."""

    if k < 0:
        raise ValueError("k must not be negative")
    if k > len(pool):
        raise CapacityError(k, len(pool))
    return rng.sample(list(pool), k)


def _stable_hash(participant_id: object) -> int:
    digest = hashlib.sha256(str(participant_id).encode("utf-8")).hexdigest()
    return int(digest[:16], 16)


def slot_for(participant_id: object, card_count: int, reserved: Set[int]) -> int:
    """Deterministic card index for ``participant_id``.

    The start index is derived from the identifier; collisions with
    ``reserved`` are resolved by probing forward one card at a time.
    """

    if card_count <= 0 or len(reserved) >= card_count:
        raise CapacityError(1, max(0, card_count - len(reserved)))
    slot = _stable_hash(participant_id) % card_count
    while slot in reserved:
        slot = (slot + 1) % card_count
    return slot


class WinnerSelector:
    """Draw winners for one round and reserve a display slot for each."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def select(
        self,
        pool: MutableSequence[Participant],
        k: int,
        card_count: int,
        reserved: Optional[Set[int]] = None,
    ) -> List[WinnerSlot]:
        """Pick ``k`` winners from ``pool``.

        Winners are removed from ``pool`` and their slots are added to
        ``reserved`` as they are assigned.

        Raises
        ------
        CapacityError
            If the pool or the free card slots cannot accommodate ``k`` winners.
        """

        reserved = reserved if reserved is not None else set()
        if k > card_count - len(reserved):
            raise CapacityError(k, max(0, card_count - len(reserved)))
        chosen = sample_winners(pool, k, self._rng)
        result: List[WinnerSlot] = []
        for participant in chosen:
            slot = slot_for(participant.id, card_count, reserved)
            reserved.add(slot)
            pool.remove(participant)
            result.append(WinnerSlot(participant, slot))
        return result
