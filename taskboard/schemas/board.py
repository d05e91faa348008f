from typing import Optional, Tuple
from pydantic import BaseModel, Field

from taskboard.models.task import TaskPriority


class ColumnSchema(BaseModel):
    """Status column as held in the board cache"""
    id: str
    project_id: str
    name: str
    display_order: int = 0

    class Config:
        frozen = True
        from_attributes = True


class CardSchema(BaseModel):
    """Task card as held in the board cache; `column_id` maps to `status_id` rows"""
    id: str
    project_id: str
    title: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    column_id: str = Field(alias="status_id")

    class Config:
        frozen = True
        from_attributes = True
        populate_by_name = True


class BoardSnapshot(BaseModel):
    """Immutable point-in-time view of one project's columns and cards"""
    project_id: str
    columns: Tuple[ColumnSchema, ...] = ()
    cards: Tuple[CardSchema, ...] = ()

    class Config:
        frozen = True

    def get_column(self, column_id: str) -> Optional[ColumnSchema]:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def get_card(self, card_id: str) -> Optional[CardSchema]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def cards_in_column(self, column_id: str) -> Tuple[CardSchema, ...]:
        return tuple(card for card in self.cards if card.column_id == column_id)

    def column_mapping(self) -> dict:
        """card id -> column id"""
        return {card.id: card.column_id for card in self.cards}


class DragSessionSchema(BaseModel):
    """Ephemeral state of one drag gesture"""
    card_id: str
    origin_column_id: str
    target_column_id: str
