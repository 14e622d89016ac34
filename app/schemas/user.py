from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserRegister(BaseModel):
    """
    Registration body. ``age`` is accepted as any JSON value and range-checked
    by the user manager so that bad input is reported as a 400.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, json_schema_extra={"example": "Ana Torres"})
    age: Optional[Any] = Field(None, json_schema_extra={"example": 34})
    photo_url: Optional[str] = Field(None, alias="photoURL")

    @field_validator("name", mode="before")
    @classmethod
    def blank_name_to_none(cls, value: Any):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str = Field(..., serialization_alias="id")
    name: str
    email: Optional[str] = None
    age: Optional[int] = None
    photo_url: Optional[str] = Field(None, serialization_alias="photoURL")
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(None, serialization_alias="updatedAt")


_WIRE_TO_FIELD = {"photoURL": "photo_url", "photoUrl": "photo_url"}


def normalize_user_updates(payload: dict) -> dict:
    """Map client field names onto model attribute names."""
    return {_WIRE_TO_FIELD.get(key, key): value for key, value in payload.items()}


def dump_user(user) -> dict:
    return UserRead.model_validate(user).model_dump(mode="json", by_alias=True)
