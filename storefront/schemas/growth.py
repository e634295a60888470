from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional


class GrowthEntryCreate(BaseModel):
    child_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    child_birth_date: Optional[date] = None
    height: Optional[float] = Field(default=None, gt=0)
    weight: Optional[float] = Field(default=None, gt=0)
    head_circumference: Optional[float] = Field(default=None, gt=0)
    notes: Optional[str] = Field(default=None, max_length=500)


class GrowthEntryResponse(BaseModel):
    id: int
    child_birth_date: Optional[date] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    head_circumference: Optional[float] = None
    notes: Optional[str] = None
    recorded_at: datetime

    class Config:
        from_attributes = True


class SizeSet(BaseModel):
    clothing: str
    shoes: str
    diaper: str


class PredictedSize(SizeSet):
    age_months: int
    height: float
    weight: float


class GrowthPercentile(BaseModel):
    height: int = Field(ge=0, le=100)
    weight: int = Field(ge=0, le=100)


class SizePrediction(BaseModel):
    current_size: SizeSet
    predicted_sizes: List[PredictedSize]
    growth_percentile: GrowthPercentile
    recommendations: List[str]
    source: str = "fallback"
