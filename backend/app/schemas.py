from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
import datetime


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    name: Optional[str] = None
    email: str
    created_at: Optional[datetime.datetime] = Field(None, serialization_alias='createdAt')


def serialize(item) -> dict:
    return User.model_validate(item).model_dump(mode='json', by_alias=True)
