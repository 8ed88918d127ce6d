"""
Card position planning.

Pure functions shared by the server-side reorder service and the client-side
optimistic cache. Nothing here touches the database or the network: callers
pass in the current, order-sorted cards of the affected columns and get back
the ``(card_id, column_id, order)`` assignments that bring both columns back
to a dense ``0..n-1`` order.

Cards are duck-typed: anything with ``card_id``, ``column_id`` and ``order``
attributes works (ORM ``Card`` rows and ``CardResponse`` models alike).
"""
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Sequence

from cardflow.core.exceptions import InvalidColumnError, InvalidIndexError
from cardflow.models.column import ColumnId


class OrderedAssignment(NamedTuple):
    card_id: str
    column_id: ColumnId
    order: int


def parse_column(value, field: str = "column") -> ColumnId:
    """Turn a raw column identifier into a ColumnId or raise InvalidColumnError"""
    try:
        return ColumnId(value)
    except ValueError:
        raise InvalidColumnError(value, field) from None


def parse_index(value, field: str = "index") -> int:
    """Accept only non-negative ints (bool is rejected even though it is an int)"""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidIndexError(value, field)
    return value


@dataclass(frozen=True)
class MoveIntent:
    """Request to move one card from (source column, index) to (destination column, index)"""

    card_id: str
    source_column: ColumnId
    destination_column: ColumnId
    source_index: int
    destination_index: int

    @classmethod
    def parse(
        cls,
        card_id: str,
        source_column,
        destination_column,
        source_index,
        destination_index,
    ) -> "MoveIntent":
        """Validate raw transport values, columns first and then indices"""
        return cls(
            card_id=card_id,
            source_column=parse_column(source_column, "sourceColumn"),
            destination_column=parse_column(destination_column, "destinationColumn"),
            source_index=parse_index(source_index, "sourceIndex"),
            destination_index=parse_index(destination_index, "destinationIndex"),
        )

    @property
    def same_column(self) -> bool:
        return self.source_column == self.destination_column


def _clamp(index: int, size: int) -> int:
    return max(0, min(index, size))


def _rank(cards: Iterable, column_id: ColumnId) -> List[OrderedAssignment]:
    return [
        OrderedAssignment(card.card_id, column_id, position)
        for position, card in enumerate(cards)
    ]


def _changed_only(
    cards_by_id: dict,
    assignments: List[OrderedAssignment],
) -> List[OrderedAssignment]:
    changed = []
    for assignment in assignments:
        card = cards_by_id[assignment.card_id]
        if card.column_id != assignment.column_id or card.order != assignment.order:
            changed.append(assignment)
    return changed


def plan(
    moved_card,
    source_cards: Sequence,
    destination_cards: Sequence,
    intent: MoveIntent,
) -> List[OrderedAssignment]:
    """Compute new positions for every card affected by a move.

    Args:
        moved_card: The card being moved
        source_cards: Cards of the source column sorted by order
        destination_cards: Cards of the destination column sorted by order,
            ignored for a move within one column
        intent: The move; ``destination_index`` past the end appends

    Returns:
        Assignments for the cards whose column or order changes, source
        column first, then destination column, each in final display order.
        Moving a card onto its own position yields an empty list.
    """
    moved_id = moved_card.card_id
    remaining_source = [card for card in source_cards if card.card_id != moved_id]

    cards_by_id = {card.card_id: card for card in source_cards}
    cards_by_id[moved_id] = moved_card

    if intent.same_column:
        index = _clamp(intent.destination_index, len(remaining_source))
        remaining_source.insert(index, moved_card)
        return _changed_only(cards_by_id, _rank(remaining_source, intent.source_column))

    destination = [card for card in destination_cards if card.card_id != moved_id]
    cards_by_id.update((card.card_id, card) for card in destination)

    index = _clamp(intent.destination_index, len(destination))
    destination.insert(index, moved_card)

    assignments = _rank(remaining_source, intent.source_column)
    assignments += _rank(destination, intent.destination_column)
    return _changed_only(cards_by_id, assignments)


def compact(cards: Sequence, column_id: ColumnId) -> List[OrderedAssignment]:
    """Re-derive order = position for one column, keeping the current display order.

    Duplicated order values keep their relative read order, so the result
    is deterministic for a given input sequence.
    """
    ordered = sorted(cards, key=lambda card: card.order)
    cards_by_id = {card.card_id: card for card in ordered}
    return _changed_only(cards_by_id, _rank(ordered, column_id))


def is_contiguous(orders: Iterable[int]) -> bool:
    """True when the order values are exactly 0..n-1"""
    values = sorted(orders)
    return values == list(range(len(values)))
