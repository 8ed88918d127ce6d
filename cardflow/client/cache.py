"""
Client-side card cache with optimistic moves.

A move is applied to the cache as soon as it is requested, using the same
planner the server runs, and a snapshot of the card list taken just before
it is kept under a request ID. When the server answers, the snapshot is
either dropped (success) or restored (failure).

Requests may overlap. A failure only restores its snapshot when no newer
move is still in flight or already confirmed. Otherwise the newer prediction
is kept and the snapshot is handed down to the oldest newer request still in
flight, so the state before the failed move can still be restored. ``stale``
is set in that case so the owner knows to refetch from the server.
"""
import itertools
import threading
import uuid
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from cardflow.core.exceptions import CardNotFoundError
from cardflow.models.column import ColumnId
from cardflow.schemas.card import CardResponse
from cardflow.services.reorder_planner import MoveIntent, plan
from cardflow.logs import debug_logger


class PendingMove:
    __slots__ = ("request_id", "sequence", "intent", "snapshot")

    def __init__(self, request_id: str, sequence: int, intent: MoveIntent, snapshot: List[CardResponse]):
        self.request_id = request_id
        self.sequence = sequence
        self.intent = intent
        self.snapshot = snapshot


class OptimisticCardCache:
    """Local copy of a board's cards that applies moves before the server confirms them"""

    def __init__(self, cards: Iterable[CardResponse] = ()):
        self._lock = threading.RLock()
        self._sequence = itertools.count(1)
        self._latest_sequence = 0
        self._confirmed_sequence = 0
        self._pending: Dict[str, PendingMove] = {}
        self.cards: List[CardResponse] = [card.model_copy() for card in cards]
        self.error: Optional[str] = None
        self.stale = False

    def replace_all(self, cards: Iterable[CardResponse]) -> None:
        """Load the authoritative card list, e.g. after a refetch"""
        with self._lock:
            self.cards = [card.model_copy() for card in cards]
            self.stale = False

    def snapshot(self) -> List[CardResponse]:
        """Deep copy of the current card list"""
        with self._lock:
            return [card.model_copy(deep=True) for card in self.cards]

    def get(self, card_id: str) -> Optional[CardResponse]:
        with self._lock:
            for card in self.cards:
                if card.card_id == card_id:
                    return card
            return None

    def column(self, column_id: ColumnId) -> List[CardResponse]:
        """Cards of one column in display order"""
        with self._lock:
            return sorted(
                (card for card in self.cards if card.column_id == column_id),
                key=lambda card: card.order,
            )

    @property
    def pending_requests(self) -> List[str]:
        with self._lock:
            return sorted(self._pending, key=lambda request_id: self._pending[request_id].sequence)

    def begin_move(self, intent: MoveIntent) -> str:
        """Apply a move locally and return the request ID its outcome must be reported under"""
        with self._lock:
            card = self.get(intent.card_id)
            if card is None:
                raise CardNotFoundError(intent.card_id)

            if card.column_id != intent.source_column:
                # Источником считаем колонку, в которой карточка лежит в кэше
                intent = replace(intent, source_column=card.column_id)

            request_id = uuid.uuid4().hex
            sequence = next(self._sequence)
            self._pending[request_id] = PendingMove(request_id, sequence, intent, self.snapshot())
            self._latest_sequence = sequence

            assignments = plan(
                card,
                self.column(intent.source_column),
                self.column(intent.destination_column),
                intent,
            )
            by_id = {c.card_id: c for c in self.cards}
            for assignment in assignments:
                target = by_id[assignment.card_id]
                target.column_id = assignment.column_id
                target.order = assignment.order

            self.error = None
            debug_logger.debug(f"Оптимистичное перемещение {intent.card_id}, запрос {request_id}, изменено {len(assignments)}")
            return request_id

    def confirm(self, request_id: str, server_card: Optional[CardResponse] = None) -> None:
        """Server accepted the move: drop its snapshot and merge the returned card"""
        with self._lock:
            pending = self._pending.pop(request_id, None)
            if pending is None:
                debug_logger.warning(f"Подтверждение для неизвестного запроса {request_id}")
                return

            self._confirmed_sequence = max(self._confirmed_sequence, pending.sequence)
            if server_card is None:
                return

            if pending.sequence != self._latest_sequence:
                # Новее уже есть предсказание, его позицию не перетираем
                self._merge_payload(server_card)
                return

            for index, card in enumerate(self.cards):
                if card.card_id == server_card.card_id:
                    self.cards[index] = server_card.model_copy()
                    break

    def rollback(self, request_id: str, error: Optional[str] = None) -> bool:
        """Server rejected the move. Returns True when the cache was restored"""
        with self._lock:
            pending = self._pending.pop(request_id, None)
            self.error = error or "Failed to update card position"
            if pending is None:
                debug_logger.warning(f"Откат для неизвестного запроса {request_id}")
                return False

            if pending.sequence == self._latest_sequence:
                self.cards = pending.snapshot
                self._refresh_latest()
                debug_logger.info(f"Перемещение {pending.intent.card_id} отменено, кэш восстановлен")
                return True

            newer = [p for p in self._pending.values() if p.sequence > pending.sequence]
            if newer:
                heir = min(newer, key=lambda p: p.sequence)
                heir.snapshot = pending.snapshot
            self.stale = True
            debug_logger.warning(
                f"Откат {request_id} пропущен: после него уже было новое перемещение, нужен повторный запрос карточек"
            )
            return False

    def _refresh_latest(self) -> None:
        # Самое новое перемещение, чье предсказание еще лежит в кэше
        live = [p.sequence for p in self._pending.values()]
        self._latest_sequence = max(live + [self._confirmed_sequence])

    def _merge_payload(self, server_card: CardResponse) -> None:
        card = self.get(server_card.card_id)
        if card is None:
            return
        card.title = server_card.title
        card.description = server_card.description
        card.updated_at = server_card.updated_at
