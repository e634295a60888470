from pydantic import BaseModel, Field, field_validator
from typing import Optional


class AddressCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    company: Optional[str] = Field(default=None, max_length=200)
    line1: str = Field(min_length=1, max_length=200)
    line2: Optional[str] = Field(default=None, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=50)
    zip: str = Field(min_length=1, max_length=20)
    country: str = Field(default="US", min_length=2, max_length=2)
    phone: Optional[str] = Field(default=None, max_length=50, pattern=r"^\+?[\d\s()-]+$")

    @field_validator("country")
    @classmethod
    def country_code_upper(cls, v: str) -> str:
        return v.upper()


class AddressResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    company: Optional[str] = None
    line1: str
    line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    zip: str
    country: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True
