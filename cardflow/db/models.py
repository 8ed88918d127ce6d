# Import all models here for Alembic to discover them
from cardflow.db.base import Base
from cardflow.models.card import Card
