from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from cardflow.db.database import get_async_session
from cardflow.core.exceptions import ReorderError
from cardflow.services.card_service import CardService
from cardflow.services.reorder_service import ReorderService
from cardflow.services.reorder_planner import is_contiguous, parse_column
from cardflow.schemas.card import (
    CardCreate,
    CardResponse,
    CardUpdate,
    CardList,
    CardPositionUpdate,
    ColumnOrderCheck,
)
from cardflow.logs import debug_logger, api_logger


router = APIRouter(
    prefix="/cards",
    tags=["cards"],
)


def to_http_exception(error: ReorderError) -> HTTPException:
    """Map a service error onto the HTTP status it stands for"""
    return HTTPException(status_code=error.status_code, detail=str(error))


@router.post("", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
async def create_card(
    card_create: CardCreate,
    db: AsyncSession = Depends(get_async_session),
):
    """Create a new card at the end of its column"""
    card = await CardService.create(
        db=db,
        title=card_create.title,
        description=card_create.description,
        board_id=card_create.board_id,
        column_id=card_create.column_id,
    )
    return card


@router.get("", response_model=CardList)
async def get_cards(
    board_id: Optional[str] = None,
    db: AsyncSession = Depends(get_async_session),
):
    """Get all cards, optionally filtered by board"""
    cards = await CardService.get_all(db=db, board_id=board_id)
    return {"cards": cards}


@router.get("/columns/{column_id}/check", response_model=ColumnOrderCheck)
async def check_column_order(
    column_id: str,
    board_id: str = Query(...),
    db: AsyncSession = Depends(get_async_session),
):
    """Report whether a column's order values are exactly 0..n-1"""
    try:
        column = parse_column(column_id)
        orders = await ReorderService.column_orders(db=db, board_id=board_id, column_id=column)
    except ReorderError as e:
        raise to_http_exception(e) from e

    return ColumnOrderCheck(
        board_id=board_id,
        column_id=column,
        count=len(orders),
        orders=orders,
        contiguous=is_contiguous(orders),
    )


@router.post("/columns/{column_id}/compact", response_model=ColumnOrderCheck)
async def compact_column(
    column_id: str,
    board_id: str = Query(...),
    db: AsyncSession = Depends(get_async_session),
):
    """Re-derive order = position for a column left with a gap or duplicate"""
    try:
        column = parse_column(column_id)
        rewritten = await ReorderService.compact_column(db=db, board_id=board_id, column_id=column)
        orders = await ReorderService.column_orders(db=db, board_id=board_id, column_id=column)
    except ReorderError as e:
        raise to_http_exception(e) from e

    api_logger.info(f"Column {column} of board {board_id} compacted, {rewritten} cards rewritten")
    return ColumnOrderCheck(
        board_id=board_id,
        column_id=column,
        count=len(orders),
        orders=orders,
        contiguous=is_contiguous(orders),
        compacted=rewritten,
    )


@router.get("/{card_id}", response_model=CardResponse)
async def get_card(
    card_id: str,
    db: AsyncSession = Depends(get_async_session),
):
    """Get a card by ID"""
    card = await CardService.find_by_id(db=db, card_id=card_id)
    if not card:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Card not found"
        )
    return card


@router.patch("/{card_id}", response_model=CardResponse)
async def update_card(
    card_id: str,
    card_update: CardUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    """Update a card's title and description"""
    card = await CardService.update(
        db=db,
        card_id=card_id,
        title=card_update.title,
        description=card_update.description,
    )
    if not card:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Card not found"
        )
    return card


@router.delete("/{card_id}", response_model=CardResponse)
async def delete_card(
    card_id: str,
    db: AsyncSession = Depends(get_async_session),
):
    """Delete a card, the rest of its column is renumbered"""
    card = await CardService.delete(db=db, card_id=card_id)
    if not card:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Card not found"
        )
    return card


@router.put("/{card_id}/position", response_model=CardResponse)
async def update_card_position(
    card_id: str,
    position: CardPositionUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    """Move a card to another position in the same or another column"""
    debug_logger.debug(f"Запрос на перемещение карточки {card_id}: {position.model_dump(by_alias=True)}")

    try:
        card = await ReorderService.reorder(
            db=db,
            card_id=card_id,
            source_column=position.source_column,
            destination_column=position.destination_column,
            source_index=position.source_index,
            destination_index=position.destination_index,
        )
    except ReorderError as e:
        api_logger.error(f"Failed to update card position {card_id}: {str(e)}")
        raise to_http_exception(e) from e

    return card
