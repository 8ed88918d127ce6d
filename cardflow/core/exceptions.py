from fastapi import status


class ReorderError(Exception):
    """Base error for card reordering and card lookups"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class CardNotFoundError(ReorderError):
    """Referenced card does not exist"""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Card with ID {card_id} not found")


class InvalidColumnError(ReorderError):
    """Column identifier is not one of the fixed workflow columns"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, value, field: str = "column"):
        self.value = value
        self.field = field
        super().__init__(f"Invalid {field}: {value!r}")


class InvalidIndexError(ReorderError):
    """Index is not a non-negative integer"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, value, field: str = "index"):
        self.value = value
        self.field = field
        super().__init__(f"Invalid {field}: {value!r} (expected a non-negative integer)")


class StoreFailureError(ReorderError):
    """The database failed a read or a write"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
