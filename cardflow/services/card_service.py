from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from datetime import datetime

from cardflow.models.card import Card
from cardflow.models.column import ColumnId
from cardflow.services.reorder_planner import compact
from cardflow.logs import debug_logger, log_function


class CardService:
    """Card storage operations

    ``find_by_column``, ``find_by_id`` and ``update_order_and_column`` are the
    store operations the reorder service builds on. They never commit, so
    every write of one reorder lands in the caller's transaction.
    """

    @staticmethod
    @log_function()
    async def create(
        db: AsyncSession,
        title: str,
        board_id: str,
        column_id: ColumnId = ColumnId.TODO,
        description: Optional[str] = None,
    ) -> Card:
        """Create a card at the end of its column"""
        # Новая карточка встает в конец колонки: order = текущее количество
        query = select(func.count(Card.id)).where(
            Card.board_id == board_id,
            Card.column_id == column_id,
        )
        result = await db.execute(query)
        order = result.scalar() or 0

        card = Card(
            title=title,
            description=description,
            board_id=board_id,
            column_id=column_id,
            order=order,
        )
        db.add(card)
        await db.commit()
        await db.refresh(card)

        debug_logger.info(f"Создана новая карточка: ID {card.card_id}, колонка {column_id}, позиция {order}")
        return card

    @staticmethod
    async def get_all(
        db: AsyncSession,
        board_id: Optional[str] = None
    ) -> List[Card]:
        """Get all cards, optionally only one board's, sorted by column and order"""
        query = select(Card).order_by(Card.column_id, Card.order)
        if board_id:
            query = query.where(Card.board_id == board_id)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def find_by_id(
        db: AsyncSession,
        card_id: str
    ) -> Optional[Card]:
        """Get a card by its public ID, refreshing any copy already in the session"""
        query = (
            select(Card)
            .where(Card.card_id == card_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def find_by_column(
        db: AsyncSession,
        column_id: ColumnId,
        board_id: Optional[str] = None
    ) -> List[Card]:
        """Get the cards of one column sorted ascending by order"""
        query = (
            select(Card)
            .where(Card.column_id == column_id)
            .order_by(Card.order, Card.id)
            .execution_options(populate_existing=True)
        )
        if board_id is not None:
            query = query.where(Card.board_id == board_id)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def update_order_and_column(
        db: AsyncSession,
        card_id: str,
        column_id: ColumnId,
        order: int
    ) -> Optional[Card]:
        """Set a card's column and order, returns None if the card does not exist"""
        stmt = (
            update(Card)
            .where(Card.card_id == card_id)
            .values(
                column_id=column_id,
                order=order,
                # Явно устанавливаем updated_at для предотвращения проблем с часовыми поясами
                updated_at=datetime.utcnow().replace(tzinfo=None),
            )
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:
            debug_logger.warning(f"Карточка {card_id} не найдена при обновлении позиции")
            return None

        return await CardService.find_by_id(db, card_id)

    @staticmethod
    async def compact_column(
        db: AsyncSession,
        board_id: str,
        column_id: ColumnId
    ) -> int:
        """Rewrite order = position for one column, returns the number of cards rewritten"""
        cards = await CardService.find_by_column(db, column_id, board_id=board_id)
        assignments = compact(cards, column_id)
        for assignment in assignments:
            await CardService.update_order_and_column(
                db, assignment.card_id, assignment.column_id, assignment.order
            )
        if assignments:
            debug_logger.debug(f"Колонка {column_id} доски {board_id} сжата: обновлено {len(assignments)} карточек")
        return len(assignments)

    @staticmethod
    @log_function()
    async def update(
        db: AsyncSession,
        card_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None
    ) -> Optional[Card]:
        """Update a card's title and description"""
        update_data = {}
        if title is not None:
            update_data["title"] = title
        if description is not None:
            update_data["description"] = description

        if not update_data:
            return await CardService.find_by_id(db, card_id)

        update_data["updated_at"] = datetime.utcnow().replace(tzinfo=None)
        debug_logger.debug(f"Обновляемые поля карточки {card_id}: {update_data}")

        stmt = update(Card).where(Card.card_id == card_id).values(**update_data)
        result = await db.execute(stmt)
        if result.rowcount == 0:
            debug_logger.warning(f"Карточка с ID {card_id} не найдена при попытке обновления")
            return None

        await db.commit()
        return await CardService.find_by_id(db, card_id)

    @staticmethod
    @log_function()
    async def delete(
        db: AsyncSession,
        card_id: str
    ) -> Optional[Card]:
        """Delete a card and close the gap it leaves in its column"""
        card = await CardService.find_by_id(db, card_id)
        if not card:
            debug_logger.warning(f"Карточка с ID {card_id} не найдена при попытке удаления")
            return None

        board_id, column_id = card.board_id, card.column_id
        await db.execute(delete(Card).where(Card.card_id == card_id))
        await CardService.compact_column(db, board_id, column_id)
        await db.commit()

        debug_logger.info(f"Карточка {card_id} удалена из колонки {column_id}")
        return card
