"""Store schemas"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class StoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    region: str
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    business_hours: Optional[str] = None


class StoreListResponse(BaseModel):
    stores: List[StoreResponse]
    count: int
