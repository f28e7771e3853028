"""Pydantic models for records exchanged with the persistence store."""

from typing import Any

from pydantic import BaseModel, Field


class InventorySlot(BaseModel):
    """One stack of an item in a remote inventory."""

    item_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)

    def to_db_keys(self, character_id: str) -> tuple[str, str]:
        """Get DynamoDB PK and SK for this slot.

        Args:
            character_id: Owning character ID

        Returns:
            Tuple of (PK, SK)
        """
        return f"CHAR#{character_id}", f"INV#{self.item_id}"

    @classmethod
    def from_db_item(cls, item: dict[str, Any]) -> "InventorySlot":
        """Create InventorySlot from DynamoDB item."""
        return cls(
            item_id=item["SK"].replace("INV#", ""),
            quantity=int(item["quantity"]),
        )


class CharacterRecord(BaseModel):
    """Remote character record as stored by the persistence gateway.

    Field names follow the local character model; ``xp`` is cumulative.
    """

    id: str
    user_id: str
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    hp: int = Field(default=100, ge=0)
    max_hp: int = Field(default=100, ge=1)
    gold: int = Field(default=50, ge=0)
    attack: int = Field(default=15, ge=0)
    defense: int = Field(default=5, ge=0)
    equipped_weapon_id: str | None = None
    equipped_armor_id: str | None = None
    equipped_accessory_id: str | None = None
    current_dungeon_id: str | None = None
    current_floor: int | None = None
    battles_won: int = Field(default=0, ge=0)
    battles_lost: int = Field(default=0, ge=0)
    class_id: str | None = None
    total_gold_earned: int = Field(default=0, ge=0)
    achievements: list[str] = Field(default_factory=list)
    dungeons_completed: int = Field(default=0, ge=0)

    def to_db_keys(self) -> tuple[str, str]:
        """Get DynamoDB PK and SK for this character.

        Returns:
            Tuple of (PK, SK)
        """
        return f"USER#{self.user_id}", f"CHAR#{self.id}"

    def to_db_item(self) -> tuple[str, str, dict[str, Any]]:
        """Convert to DynamoDB item format.

        Returns:
            Tuple of (PK, SK, data dict)
        """
        pk, sk = self.to_db_keys()
        data = self.model_dump(exclude={"id", "user_id"})
        return pk, sk, data

    @classmethod
    def from_db_item(cls, item: dict[str, Any]) -> "CharacterRecord":
        """Create CharacterRecord from DynamoDB item.

        DynamoDB hands numbers back as ``Decimal``; pydantic coerces them to
        ``int`` through the field types.

        Args:
            item: DynamoDB item dict

        Returns:
            CharacterRecord instance
        """
        user_id = item["PK"].replace("USER#", "")
        character_id = item["SK"].replace("CHAR#", "")
        fields = set(cls.model_fields) - {"id", "user_id"}
        return cls(
            id=character_id,
            user_id=user_id,
            **{k: v for k, v in item.items() if k in fields},
        )
