from typing import List, Optional

import requests

from cardflow.core import get_settings
from cardflow.client.cache import OptimisticCardCache
from cardflow.models.column import ColumnId
from cardflow.schemas.card import CardResponse
from cardflow.services.reorder_planner import MoveIntent
from cardflow.logs import api_logger


class CardflowAPIError(Exception):
    """Non-2xx answer or transport failure (including timeouts) from the card API"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class CardflowClient:
    """Thin HTTP client for the /api/v1/cards endpoints"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        settings = get_settings()
        self.base_url = (base_url or settings.API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.API_TIMEOUT
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            api_logger.error(f"{method} {url} failed: {e}")
            raise CardflowAPIError(f"Request to {url} failed: {e}") from e

        if not response.ok:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            api_logger.error(f"{method} {url} returned {response.status_code}: {detail}")
            raise CardflowAPIError(str(detail), status_code=response.status_code)

        return response.json()

    def list_cards(self, board_id: str) -> List[CardResponse]:
        data = self._request("GET", "/cards", params={"board_id": board_id})
        return [CardResponse.model_validate(card) for card in data["cards"]]

    def get_card(self, card_id: str) -> CardResponse:
        return CardResponse.model_validate(self._request("GET", f"/cards/{card_id}"))

    def create_card(self, board_id: str, title: str, column_id: ColumnId = ColumnId.TODO, description: Optional[str] = None) -> CardResponse:
        payload = {
            "board_id": board_id,
            "title": title,
            "column_id": ColumnId(column_id).value,
            "description": description,
        }
        return CardResponse.model_validate(self._request("POST", "/cards", json=payload))

    def delete_card(self, card_id: str) -> CardResponse:
        return CardResponse.model_validate(self._request("DELETE", f"/cards/{card_id}"))

    def update_position(self, intent: MoveIntent) -> CardResponse:
        payload = {
            "sourceColumn": intent.source_column.value,
            "destinationColumn": intent.destination_column.value,
            "sourceIndex": intent.source_index,
            "destinationIndex": intent.destination_index,
        }
        data = self._request("PUT", f"/cards/{intent.card_id}/position", json=payload)
        return CardResponse.model_validate(data)


class BoardSession:
    """One board's cards on the client: optimistic moves backed by the API"""

    def __init__(self, client: CardflowClient, board_id: str, cache: Optional[OptimisticCardCache] = None):
        self.client = client
        self.board_id = board_id
        self.cache = cache or OptimisticCardCache()

    def refresh(self) -> List[CardResponse]:
        cards = self.client.list_cards(self.board_id)
        self.cache.replace_all(cards)
        return cards

    def move_card(
        self,
        card_id: str,
        source_column,
        destination_column,
        source_index,
        destination_index,
    ) -> CardResponse:
        """Predict the move locally, send it, then keep or undo the prediction

        Raises CardflowAPIError after rolling back when the server rejects
        the move or cannot be reached.
        """
        intent = MoveIntent.parse(card_id, source_column, destination_column, source_index, destination_index)
        request_id = self.cache.begin_move(intent)

        try:
            card = self.client.update_position(intent)
        except CardflowAPIError as e:
            self.cache.rollback(request_id, str(e))
            raise

        self.cache.confirm(request_id, card)
        return card
