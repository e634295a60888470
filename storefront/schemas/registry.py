from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional


class RegistryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    child_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    event_date: Optional[date] = None


class RegistryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    child_name: Optional[str] = None
    event_date: Optional[date] = None
    predicted_sizes: Optional[dict] = None
    created_at: datetime

    class Config:
        from_attributes = True
