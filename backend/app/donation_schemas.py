from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
import datetime


class DonationCreate(BaseModel):
    """Incoming POST /api/donate body. Presence checks happen in the service."""
    name: Optional[Any] = None
    amount: Optional[Any] = None
    method: Optional[Any] = None
    paymentMethodData: Optional[Dict[str, Any]] = None


class Donation(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    name: str
    amount: float
    method: str
    reference: str
    created_at: datetime.datetime = Field(serialization_alias='createdAt')


def serialize(item) -> dict:
    return Donation.model_validate(item).model_dump(mode='json', by_alias=True)
