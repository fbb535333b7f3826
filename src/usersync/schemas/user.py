"""Pydantic schemas for user records.

Learn: The same person submitted once ends up as two records with two
different ids, one per store. Nothing links them, so User carries only
the store-assigned id of whichever store it came from.
"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class UserCreate(BaseModel):
    """Body of POST /api/userPost."""

    name: str = Field(..., max_length=200)
    email: str = Field(..., max_length=320)
    domain: str = Field(..., min_length=1, max_length=253)

    @field_validator("name", "email")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class User(BaseModel):
    """A user record as read back from either store."""

    id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("id", "_id")
    )
    name: str
    email: str
    domain: str

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> Optional[str]:
        # Document stores hand back ObjectIds, ints, {"$oid": ...}
        if value is None:
            return None
        if isinstance(value, dict) and "$oid" in value:
            return str(value["$oid"])
        return str(value)
