import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Text, Enum, Index

from cardflow.db.base import Base
from cardflow.models.column import ColumnId


def _new_card_id() -> str:
    return str(uuid.uuid4())


class Card(Base):
    """Карточка на доске"""

    __tablename__ = "cards"
    __table_args__ = (
        # Выборка колонки всегда идет по (board_id, column_id) с сортировкой по order
        Index("ix_cards_board_column_order", "board_id", "column_id", "order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    card_id = Column(String(36), nullable=False, unique=True, index=True, default=_new_card_id)
    board_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    column_id = Column(
        Enum(ColumnId, name="card_column", values_callable=lambda enum_cls: [m.value for m in enum_cls]),
        nullable=False,
        default=ColumnId.TODO,
    )
    order = Column(Integer, nullable=False, default=0)  # Позиция внутри колонки, 0..n-1
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Card {self.card_id} {self.column_id}:{self.order}>"
