import pytest
from contextlib import asynccontextmanager
from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cardflow.core.exceptions import StoreFailureError
from cardflow.db.base import Base
from cardflow.models.column import ColumnId
from cardflow.services.card_service import CardService
from cardflow.services.reorder_service import ReorderService


TODO, IN_PROGRESS, DONE = ColumnId.TODO, ColumnId.IN_PROGRESS, ColumnId.DONE


@asynccontextmanager
async def sqlite_session():
    """Сессия поверх реальной БД в памяти"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    try:
        async with session_factory() as session:
            yield session
    finally:
        await engine.dispose()


async def seed(db, board_id, column_id, *titles):
    """Создает карточки в конец колонки, возвращает {title: card_id}"""
    ids = {}
    for title in titles:
        card = await CardService.create(db, title=title, board_id=board_id, column_id=column_id)
        ids[title] = card.card_id
    return ids


async def column(db, column_id, board_id="b1"):
    cards = await CardService.find_by_column(db, column_id, board_id=board_id)
    return [(card.title, card.order) for card in cards]


class TestReorderAgainstDatabase:
    """Перемещения через настоящие CardService и ReorderService на SQLite"""

    @pytest.mark.asyncio
    async def test_create_appends_at_end(self):
        async with sqlite_session() as db:
            await seed(db, "b1", TODO, "C1", "C2", "C3")
            await seed(db, "b2", TODO, "X1")

            assert await column(db, TODO) == [("C1", 0), ("C2", 1), ("C3", 2)]
            assert await column(db, TODO, board_id="b2") == [("X1", 0)]

    @pytest.mark.asyncio
    async def test_scenario_a_cross_column(self):
        async with sqlite_session() as db:
            ids = await seed(db, "b1", TODO, "C1", "C2", "C3")

            card = await ReorderService.reorder(db, ids["C2"], "todo", "inProgress", 1, 0)

            assert (card.column_id, card.order) == (IN_PROGRESS, 0)
            assert await column(db, TODO) == [("C1", 0), ("C3", 1)]
            assert await column(db, IN_PROGRESS) == [("C2", 0)]

    @pytest.mark.asyncio
    async def test_scenario_b_same_column(self):
        async with sqlite_session() as db:
            ids = await seed(db, "b1", TODO, "C1", "C2", "C3")

            card = await ReorderService.reorder(db, ids["C1"], "todo", "todo", 0, 2)

            assert card.order == 2
            assert await column(db, TODO) == [("C2", 0), ("C3", 1), ("C1", 2)]

    @pytest.mark.asyncio
    async def test_scenario_c_index_clamped(self):
        async with sqlite_session() as db:
            await seed(db, "b1", IN_PROGRESS, "C4")
            ids = await seed(db, "b1", DONE, "C5")

            card = await ReorderService.reorder(db, ids["C5"], "done", "inProgress", 0, 99)

            assert (card.column_id, card.order) == (IN_PROGRESS, 1)
            assert await column(db, IN_PROGRESS) == [("C4", 0), ("C5", 1)]
            assert await column(db, DONE) == []

    @pytest.mark.asyncio
    async def test_scenario_d_empty_destination(self):
        async with sqlite_session() as db:
            ids = await seed(db, "b1", TODO, "C6")

            card = await ReorderService.reorder(db, ids["C6"], "todo", "done", 0, 0)

            assert (card.column_id, card.order) == (DONE, 0)
            assert await column(db, DONE) == [("C6", 0)]
            assert await column(db, TODO) == []

    @pytest.mark.asyncio
    async def test_noop_move_keeps_columns(self):
        async with sqlite_session() as db:
            ids = await seed(db, "b1", TODO, "C1", "C2", "C3")

            card = await ReorderService.reorder(db, ids["C2"], "todo", "todo", 1, 1)

            assert card.order == 1
            assert await column(db, TODO) == [("C1", 0), ("C2", 1), ("C3", 2)]

    @pytest.mark.asyncio
    async def test_other_board_untouched(self):
        async with sqlite_session() as db:
            ids = await seed(db, "b1", TODO, "C1", "C2")
            await seed(db, "b2", TODO, "X1", "X2")

            await ReorderService.reorder(db, ids["C1"], "todo", "inProgress", 0, 0)

            assert await column(db, TODO, board_id="b2") == [("X1", 0), ("X2", 1)]
            assert await column(db, IN_PROGRESS, board_id="b2") == []

    @pytest.mark.asyncio
    async def test_delete_closes_gap(self):
        async with sqlite_session() as db:
            ids = await seed(db, "b1", TODO, "C1", "C2", "C3")

            deleted = await CardService.delete(db, ids["C2"])

            assert deleted is not None
            assert await CardService.find_by_id(db, ids["C2"]) is None
            assert await column(db, TODO) == [("C1", 0), ("C3", 1)]

    @pytest.mark.asyncio
    async def test_failed_write_leaves_columns_unchanged(self):
        async with sqlite_session() as db:
            ids = await seed(db, "b1", TODO, "C1", "C2", "C3")
            original_update = CardService.update_order_and_column
            calls = []

            async def fail_on_second_write(session, card_id, column_id, order):
                calls.append(card_id)
                if len(calls) == 2:
                    raise OperationalError("UPDATE cards", {}, Exception("disk I/O error"))
                return await original_update(session, card_id, column_id, order)

            with patch.object(CardService, "update_order_and_column", fail_on_second_write):
                with pytest.raises(StoreFailureError):
                    await ReorderService.reorder(db, ids["C1"], "todo", "todo", 0, 2)

            # Первая запись уже ушла в транзакцию, но откатилась вместе с ней
            assert len(calls) == 2
            assert await column(db, TODO) == [("C1", 0), ("C2", 1), ("C3", 2)]
