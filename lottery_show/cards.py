"""Card registry: the ordered visual cards bound to roster participants."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .formations import ZERO, Vec3
from .models import Participant

__all__ = ["SKIN_MODES", "CardSkin", "Card", "CardRegistry", "Spawn"]

SKIN_MODES = ("default", "sphere", "lucky")


@dataclass
class CardSkin:
    """What a card currently displays.

    The ambient shuffle swaps the displayed participant without touching the
    card's binding, so the skin and :attr:`Card.participant` may differ.
    """

    participant: Participant
    mode: str = "default"


@dataclass
class Card:
    index: int
    participant: Participant
    position: Vec3 = ZERO
    rotation: Vec3 = ZERO
    scale: float = 1.0
    skin: Optional[CardSkin] = None

    def __post_init__(self) -> None:
        if self.skin is None:
            self.skin = CardSkin(self.participant)

    def restyle(self, mode: str, participant: Optional[Participant] = None) -> None:
        if mode not in SKIN_MODES:
            raise ValueError(f"Unknown skin mode {mode!r}")
        self.skin = CardSkin(participant or self.participant, mode)


# Returns the starting (position, rotation) of a freshly built card.
Spawn = Callable[[Participant, Optional[Card]], Tuple[Vec3, Vec3]]


class CardRegistry:
    """Ordered cards, one per participant."""

    def __init__(self) -> None:
        self._cards: List[Card] = []

    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self._cards)

    def __getitem__(self, index: int) -> Card:
        return self._cards[index]

    @property
    def cards(self) -> List[Card]:
        return list(self._cards)

    def rebuild(self, participants: Sequence[Participant], spawn: Spawn, mode: str = "default") -> List[Card]:
        """Recreate every card in roster order.

        ``spawn`` receives the participant and the card previously bound to it
        (``None`` for newcomers) and returns the starting transform.
        """

        previous: Dict[int, Card] = {card.participant.id: card for card in self._cards}
        cards: List[Card] = []
        for index, participant in enumerate(participants):
            old = previous.get(participant.id)
            position, rotation = spawn(participant, old)
            card = Card(index, participant, position, rotation)
            card.restyle(mode)
            cards.append(card)
        self._cards = cards
        return self.cards

    def append(self, participant: Participant, position: Vec3 = ZERO, rotation: Vec3 = ZERO) -> Card:
        card = Card(len(self._cards), participant, position, rotation)
        self._cards.append(card)
        return card

    def swap(self, first: int, second: int) -> None:
        if first == second:
            return
        self._cards[first], self._cards[second] = self._cards[second], self._cards[first]
        self.reindex()

    def reindex(self) -> None:
        for index, card in enumerate(self._cards):
            card.index = index

    def reorder(self, participants: Sequence[Participant]) -> None:
        """Put cards back in roster order, keeping their transforms."""

        rank = {participant.id: idx for idx, participant in enumerate(participants)}
        self._cards.sort(key=lambda card: rank.get(card.participant.id, len(rank)))
        self.reindex()

    def restyle_all(self, mode: str) -> None:
        for card in self._cards:
            card.restyle(mode)
