from cardflow.models.column import ColumnId
from cardflow.models.card import Card
