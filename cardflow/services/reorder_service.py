from dataclasses import replace
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardflow.core.exceptions import CardNotFoundError, StoreFailureError
from cardflow.models.card import Card
from cardflow.models.column import ColumnId
from cardflow.services.card_service import CardService
from cardflow.services.reorder_planner import MoveIntent, is_contiguous, parse_column, plan
from cardflow.logs import debug_logger, log_function, api_logger


class ReorderService:
    """Applies card moves against the database

    All writes of one move go through the caller's session and are
    committed once, so a failed write rolls the whole move back instead of
    leaving a column with a gap or a duplicate. Concurrent moves in the same
    column are not serialized: the later commit wins for each card, and the
    post-write check below re-compacts a column that a concurrent writer
    left out of 0..n-1 order.
    """

    @staticmethod
    @log_function()
    async def reorder(
        db: AsyncSession,
        card_id: str,
        source_column,
        destination_column,
        source_index,
        destination_index,
    ) -> Card:
        """Move a card and renumber every card in the affected columns

        Raises:
            InvalidColumnError, InvalidIndexError: before any database access
            CardNotFoundError: the card does not exist
            StoreFailureError: a read or write failed, nothing was committed
        """
        intent = MoveIntent.parse(card_id, source_column, destination_column, source_index, destination_index)
        debug_logger.debug(
            f"Перемещение карточки {card_id}: {intent.source_column}[{intent.source_index}] -> "
            f"{intent.destination_column}[{intent.destination_index}]"
        )

        try:
            card = await CardService.find_by_id(db, card_id)
            if card is None:
                debug_logger.warning(f"Карточка {card_id} не найдена при попытке перемещения")
                raise CardNotFoundError(card_id)

            intent = ReorderService._reconcile_source(card, intent)
            board_id = card.board_id

            source_cards = await CardService.find_by_column(db, intent.source_column, board_id=board_id)
            if intent.same_column:
                destination_cards = source_cards
            else:
                destination_cards = await CardService.find_by_column(db, intent.destination_column, board_id=board_id)
            debug_logger.debug(
                f"В исходной колонке {len(source_cards)} карточек, в целевой {len(destination_cards)}"
            )
            ReorderService._check_source_index(card, source_cards, intent)

            assignments = plan(card, source_cards, destination_cards, intent)
            debug_logger.log_data("План перемещения", [tuple(a) for a in assignments])

            for assignment in assignments:
                updated = await CardService.update_order_and_column(
                    db, assignment.card_id, assignment.column_id, assignment.order
                )
                if updated is None:
                    # Карточку удалили между чтением и записью, колонку выровняет проверка ниже
                    debug_logger.warning(f"Карточка {assignment.card_id} исчезла во время перемещения")

            await db.flush()
            await ReorderService._ensure_contiguous(db, board_id, {intent.source_column, intent.destination_column})
            await db.commit()

            moved = await CardService.find_by_id(db, card_id)
        except SQLAlchemyError as e:
            await db.rollback()
            debug_logger.error(f"Ошибка при перемещении карточки {card_id}: {str(e)}")
            api_logger.error(f"Failed to move card {card_id} to {intent.destination_column}: {str(e)}")
            raise StoreFailureError(f"Failed to update card position {card_id}: {e}") from e

        if moved is None:
            raise CardNotFoundError(card_id)

        debug_logger.info(
            f"Карточка {card_id} перемещена в колонку {moved.column_id} на позицию {moved.order}, "
            f"обновлено карточек: {len(assignments)}"
        )
        return moved

    @staticmethod
    def _reconcile_source(card: Card, intent: MoveIntent) -> MoveIntent:
        """Use the stored column of the card as the real source of the move"""
        if card.column_id == intent.source_column:
            return intent

        api_logger.warning(
            f"Card {card.card_id} is in {card.column_id}, request says {intent.source_column}; using stored column"
        )
        return replace(intent, source_column=ColumnId(card.column_id))

    @staticmethod
    def _check_source_index(card: Card, source_cards: List[Card], intent: MoveIntent) -> None:
        # Позиция берется из БД по card_id, sourceIndex клиента только сверяем
        positions = [c.card_id for c in source_cards]
        actual = positions.index(card.card_id) if card.card_id in positions else None
        if actual != intent.source_index:
            api_logger.warning(
                f"Card {card.card_id} is at index {actual} of {intent.source_column}, "
                f"request says {intent.source_index}; client view is stale"
            )

    @staticmethod
    async def _ensure_contiguous(db: AsyncSession, board_id: str, columns) -> Dict[ColumnId, int]:
        """Post-write check: re-compact any touched column that is not 0..n-1"""
        repaired = {}
        for column_id in sorted(columns, key=lambda c: c.value):
            cards = await CardService.find_by_column(db, column_id, board_id=board_id)
            if is_contiguous(card.order for card in cards):
                continue
            api_logger.warning(
                f"Column {column_id} of board {board_id} has orders {[c.order for c in cards]}, re-compacting"
            )
            repaired[column_id] = await CardService.compact_column(db, board_id, column_id)
        return repaired

    @staticmethod
    @log_function()
    async def compact_column(db: AsyncSession, board_id: str, column_id) -> int:
        """Corrective pass for one column, returns the number of cards rewritten"""
        column = parse_column(column_id)
        try:
            rewritten = await CardService.compact_column(db, board_id, column)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            debug_logger.error(f"Ошибка при сжатии колонки {column} доски {board_id}: {str(e)}")
            raise StoreFailureError(f"Failed to compact column {column}: {e}") from e
        return rewritten

    @staticmethod
    async def column_orders(db: AsyncSession, board_id: str, column_id) -> List[int]:
        """Order values of one column as currently stored"""
        column = parse_column(column_id)
        try:
            cards = await CardService.find_by_column(db, column, board_id=board_id)
        except SQLAlchemyError as e:
            raise StoreFailureError(f"Failed to read column {column}: {e}") from e
        return [card.order for card in cards]
