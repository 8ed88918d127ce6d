import enum


class ColumnId(str, enum.Enum):
    """Fixed workflow columns a card can occupy"""

    TODO = "todo"
    IN_PROGRESS = "inProgress"
    DONE = "done"

    def __str__(self) -> str:
        return self.value
