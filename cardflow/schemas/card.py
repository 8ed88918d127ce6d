from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field

from cardflow.models.column import ColumnId


class CardBase(BaseModel):
    """Base schema for card data"""
    title: str
    description: Optional[str] = None


class CardCreate(CardBase):
    """Schema for card creation, the card is appended to the end of its column"""
    board_id: str
    column_id: ColumnId = ColumnId.TODO


class CardUpdate(BaseModel):
    """Schema for card update

    Column and order are changed only through the position endpoint.
    """
    title: Optional[str] = None
    description: Optional[str] = None


class CardResponse(CardBase):
    """Schema for card response"""
    card_id: str
    board_id: str
    column_id: ColumnId
    order: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CardList(BaseModel):
    """Schema for list of cards"""
    cards: List[CardResponse]


class CardPositionUpdate(BaseModel):
    """Move intent carried by the position endpoint

    Field names on the wire are fixed: sourceColumn, destinationColumn,
    sourceIndex, destinationIndex. Columns stay plain strings here so an
    unknown column is reported as an invalid column (400) by the reorder
    service rather than as a generic validation error. Indices are taken
    as sent, without coercion, so "1", 2.0 or "abc" reach the service and
    are reported as an invalid index (400) as well.
    """
    source_column: str = Field(alias="sourceColumn")
    destination_column: str = Field(alias="destinationColumn")
    source_index: Any = Field(alias="sourceIndex")
    destination_index: Any = Field(alias="destinationIndex")

    class Config:
        populate_by_name = True


class ColumnOrderCheck(BaseModel):
    """Current order values of one column and whether they are 0..n-1"""
    board_id: str
    column_id: ColumnId
    count: int
    orders: List[int]
    contiguous: bool
    compacted: int = 0
