"""Random registrants and prizes for rehearsals."""

from __future__ import annotations

import random
from typing import List, Optional

from .models import Participant, Partition, Prize
from .store import MemoryStore

__all__ = ["random_name", "random_phone", "demo_participants", "demo_prizes", "demo_store"]

FAMILY_NAMES = ["Zhao", "Qian", "Sun", "Li", "Zhou", "Wu", "Zheng", "Wang",
                "Feng", "Chen", "Chu", "Wei", "Jiang", "Shen", "Han", "Yang"]
GIVEN_NAMES = ["Wei", "Fang", "Na", "Min", "Jing", "Li", "Qiang", "Lei",
               "Jun", "Yang", "Yong", "Yan", "Jie", "Juan", "Tao", "Ming"]


def random_name(rng: random.Random) -> str:
    given = rng.choice(GIVEN_NAMES)
    if rng.random() > 0.5:
        given += rng.choice(GIVEN_NAMES).lower()
    return f"{rng.choice(FAMILY_NAMES)} {given}"


def random_phone(rng: random.Random) -> str:
    return f"1{rng.randint(3, 9)}{rng.randrange(10 ** 9):09d}"


def demo_participants(count: int, rng: Optional[random.Random] = None, start_id: int = 1) -> List[Participant]:
    """``count`` participants with distinct phone numbers."""

    rng = rng or random.Random()
    people: List[Participant] = []
    phones = set()
    while len(people) < max(0, count):
        phone = random_phone(rng)
        if phone in phones:
            continue
        phones.add(phone)
        people.append(Participant.draft(start_id + len(people), random_name(rng), phone))
    return people


def demo_prizes() -> List[Prize]:
    return [
        Prize(id=1, name="Third prize", count=10, partitions=[Partition(5), Partition(5)]),
        Prize(id=2, name="Second prize", count=3),
        Prize(id=3, name="First prize", count=1),
        Prize(id=4, name="Lucky draw", count=5, is_all=True),
    ]


def demo_store(count: int, rng: Optional[random.Random] = None) -> MemoryStore:
    return MemoryStore(demo_participants(count, rng), demo_prizes())
