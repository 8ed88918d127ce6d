import pytest
import requests
from unittest.mock import MagicMock

from cardflow.client.api import BoardSession, CardflowAPIError, CardflowClient
from cardflow.client.cache import OptimisticCardCache
from cardflow.models.column import ColumnId
from cardflow.core.exceptions import InvalidColumnError
from cardflow.services.reorder_planner import MoveIntent


def card_payload(card_id, column_id, order, title=None):
    return {
        "card_id": card_id,
        "board_id": "board-1",
        "title": title or card_id,
        "description": None,
        "column_id": column_id,
        "order": order,
        "created_at": "2026-10-18T10:00:00",
        "updated_at": "2026-10-18T10:00:00",
    }


def http_response(status_code, payload):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.json.return_value = payload
    response.text = str(payload)
    return response


@pytest.fixture
def http_session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(http_session):
    return CardflowClient(base_url="http://api.test/api/v1/", timeout=2, session=http_session)


class TestCardflowClient:
    """HTTP-клиент API карточек"""

    def test_update_position_sends_move_intent_verbatim(self, client, http_session):
        http_session.request.return_value = http_response(200, card_payload("C2", "inProgress", 0))

        card = client.update_position(MoveIntent.parse("C2", "todo", "inProgress", 1, 0))

        assert card.column_id == ColumnId.IN_PROGRESS
        http_session.request.assert_called_once_with(
            "PUT",
            "http://api.test/api/v1/cards/C2/position",
            timeout=2,
            json={
                "sourceColumn": "todo",
                "destinationColumn": "inProgress",
                "sourceIndex": 1,
                "destinationIndex": 0,
            },
        )

    def test_error_detail_is_raised(self, client, http_session):
        http_session.request.return_value = http_response(404, {"detail": "Card with ID C9 not found"})

        with pytest.raises(CardflowAPIError) as exc_info:
            client.get_card("C9")

        assert exc_info.value.status_code == 404
        assert "C9" in str(exc_info.value)

    def test_timeout_is_api_error(self, client, http_session):
        http_session.request.side_effect = requests.Timeout("read timed out")

        with pytest.raises(CardflowAPIError) as exc_info:
            client.list_cards("board-1")

        assert exc_info.value.status_code is None

    def test_list_cards(self, client, http_session):
        http_session.request.return_value = http_response(200, {"cards": [card_payload("C1", "todo", 0)]})

        cards = client.list_cards("board-1")

        assert [c.card_id for c in cards] == ["C1"]
        assert http_session.request.call_args.kwargs["params"] == {"board_id": "board-1"}


class TestBoardSession:
    """Перемещение с оптимистичным обновлением и откатом"""

    @pytest.fixture
    def session(self, client, http_session):
        http_session.request.return_value = http_response(200, {"cards": [
            card_payload("C1", "todo", 0),
            card_payload("C2", "todo", 1),
            card_payload("C3", "todo", 2),
        ]})
        board = BoardSession(client, "board-1", OptimisticCardCache())
        board.refresh()
        return board

    def test_successful_move(self, session, http_session):
        http_session.request.return_value = http_response(200, card_payload("C2", "inProgress", 0))

        card = session.move_card("C2", "todo", "inProgress", 1, 0)

        assert card.column_id == ColumnId.IN_PROGRESS
        assert [c.card_id for c in session.cache.column(ColumnId.TODO)] == ["C1", "C3"]
        assert [c.card_id for c in session.cache.column(ColumnId.IN_PROGRESS)] == ["C2"]
        assert session.cache.pending_requests == []

    def test_failed_move_rolls_back(self, session, http_session):
        before = session.cache.snapshot()
        http_session.request.return_value = http_response(500, {"detail": "Failed to update card position C1"})

        with pytest.raises(CardflowAPIError):
            session.move_card("C1", "todo", "todo", 0, 2)

        assert session.cache.cards == before
        assert session.cache.error == "Failed to update card position C1"

    def test_timeout_rolls_back(self, session, http_session):
        before = session.cache.snapshot()
        http_session.request.side_effect = requests.ConnectTimeout("connect timed out")

        with pytest.raises(CardflowAPIError):
            session.move_card("C3", "todo", "done", 2, 0)

        assert session.cache.cards == before

    def test_invalid_column_is_rejected_locally(self, session, http_session):
        http_session.request.reset_mock()

        with pytest.raises(InvalidColumnError) as exc_info:
            session.move_card("C1", "todo", "blocked", 0, 0)

        assert "blocked" in str(exc_info.value)
        http_session.request.assert_not_called()
        assert session.cache.pending_requests == []
