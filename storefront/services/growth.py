import logging
from bisect import bisect_right
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.ai_client import AIClient, ai_client
from storefront.core.exceptions import AIServiceError, NotFoundError, StorefrontError
from storefront.db.models import GrowthEntry, Registry
from storefront.schemas.growth import (
    GrowthEntryCreate,
    GrowthPercentile,
    PredictedSize,
    SizePrediction,
    SizeSet,
)

logger = logging.getLogger(__name__)

# Age in months -> size bracket that starts at that age
SIZE_TABLE = {
    0: SizeSet(clothing="Newborn", shoes="0", diaper="N"),
    3: SizeSet(clothing="0-3 months", shoes="1", diaper="N"),
    6: SizeSet(clothing="3-6 months", shoes="2", diaper="1"),
    9: SizeSet(clothing="6-9 months", shoes="3", diaper="2"),
    12: SizeSet(clothing="12 months", shoes="4", diaper="3"),
    18: SizeSet(clothing="18 months", shoes="5", diaper="4"),
    24: SizeSet(clothing="24 months", shoes="6", diaper="5"),
}
SIZE_TABLE_AGES = sorted(SIZE_TABLE)

PROJECTION_STEP_MONTHS = 2
PROJECTION_HORIZON_MONTHS = 6
HEIGHT_GAIN_PER_MONTH = 1.5
WEIGHT_GAIN_PER_MONTH = 0.5
PERCENTILE_FLOOR = 5
PERCENTILE_CEILING = 95

FALLBACK_RECOMMENDATIONS = [
    "Continue tracking your baby's growth regularly",
    "Consult your pediatrician if you have concerns about growth",
    "Ensure proper nutrition for healthy development",
    "Remember every baby grows at their own pace",
]

SYSTEM_PROMPT = (
    "You are a baby growth expert who provides accurate size predictions "
    "and recommendations based on growth data."
)


def _round_half_up(value: float, places: str = "1") -> float:
    return float(Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP))


def age_in_months(birth_date: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    return max(0, (today - birth_date).days // 30)


def size_for_age(age_months: float) -> SizeSet:
    """Size bracket with the largest starting age not above age_months."""
    index = bisect_right(SIZE_TABLE_AGES, age_months) - 1
    return SIZE_TABLE[SIZE_TABLE_AGES[max(index, 0)]]


def _expected_height(age_months: float) -> float:
    return 50 + age_months * 2.5


def _expected_weight(age_months: float) -> float:
    return 3.5 + age_months * 0.5


def _clamp_percentile(value: float) -> int:
    clamped = min(PERCENTILE_CEILING, max(PERCENTILE_FLOOR, value))
    return int(_round_half_up(clamped, "1"))


def generate_fallback_prediction(
    age_months: int,
    height: Optional[float] = None,
    weight: Optional[float] = None,
) -> SizePrediction:
    """Growth-chart heuristic used when the AI prediction is unavailable."""
    predicted_sizes: List[PredictedSize] = []
    for months_ahead in range(PROJECTION_STEP_MONTHS, PROJECTION_HORIZON_MONTHS + 1, PROJECTION_STEP_MONTHS):
        future_age = age_months + months_ahead
        future_size = size_for_age(future_age)

        if height:
            estimated_height = height + months_ahead * HEIGHT_GAIN_PER_MONTH
        else:
            estimated_height = _expected_height(future_age)
        if weight:
            estimated_weight = weight + months_ahead * WEIGHT_GAIN_PER_MONTH
        else:
            estimated_weight = _expected_weight(future_age)

        predicted_sizes.append(PredictedSize(
            age_months=future_age,
            clothing=future_size.clothing,
            shoes=future_size.shoes,
            diaper=future_size.diaper,
            height=_round_half_up(estimated_height),
            weight=_round_half_up(estimated_weight),
        ))

    height_percentile = _clamp_percentile(50 + (height - _expected_height(age_months)) / 2) if height else 50
    weight_percentile = _clamp_percentile(50 + (weight - _expected_weight(age_months)) * 10) if weight else 50

    return SizePrediction(
        current_size=size_for_age(age_months),
        predicted_sizes=predicted_sizes,
        growth_percentile=GrowthPercentile(height=height_percentile, weight=weight_percentile),
        recommendations=list(FALLBACK_RECOMMENDATIONS),
        source="fallback",
    )


def _build_prompt(age_months: int, entry: GrowthEntry) -> str:
    return f"""
Based on the following growth data, predict the child's future sizes and provide recommendations.

Child Information:
- Current Age: {age_months} months
- Current Height: {entry.height or 'N/A'} cm
- Current Weight: {entry.weight or 'N/A'} kg
- Head Circumference: {entry.head_circumference or 'N/A'} cm

Respond with a JSON object:
{{
  "current_size": {{"clothing": "size", "shoes": "size", "diaper": "size"}},
  "predicted_sizes": [
    {{"age_months": number, "clothing": "size", "shoes": "size", "diaper": "size", "height": number, "weight": number}}
  ],
  "growth_percentile": {{"height": number, "weight": number}},
  "recommendations": ["tip1", "tip2", "tip3"]
}}
Predict sizes for the next 6 months, every 2 months.
"""


async def _get_owned_registry(db: AsyncSession, user_id: int, registry_id: int) -> Registry:
    result = await db.execute(
        select(Registry).where(Registry.id == registry_id, Registry.user_id == user_id)
    )
    registry = result.scalar_one_or_none()
    if not registry:
        raise NotFoundError("Registry not found")
    return registry


async def add_growth_entry(db: AsyncSession, user_id: int, registry_id: int, data: GrowthEntryCreate) -> GrowthEntry:
    registry = await _get_owned_registry(db, user_id, registry_id)

    if data.child_name:
        registry.child_name = data.child_name

    entry = GrowthEntry(
        registry_id=registry.id,
        child_birth_date=data.child_birth_date,
        height=data.height,
        weight=data.weight,
        head_circumference=data.head_circumference,
        notes=data.notes,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    logger.info(f"Growth entry {entry.id} added to registry {registry.id}")
    return entry


async def list_growth_entries(db: AsyncSession, user_id: int, registry_id: int) -> list[GrowthEntry]:
    await _get_owned_registry(db, user_id, registry_id)
    result = await db.execute(
        select(GrowthEntry)
        .where(GrowthEntry.registry_id == registry_id)
        .order_by(GrowthEntry.recorded_at.desc(), GrowthEntry.id.desc())
    )
    return list(result.scalars().all())


async def get_size_prediction(
    db: AsyncSession,
    user_id: int,
    registry_id: int,
    client: AIClient = ai_client,
    today: Optional[date] = None,
) -> SizePrediction:
    """Predict sizes from the latest growth entry, falling back to the heuristic."""
    registry = await _get_owned_registry(db, user_id, registry_id)
    entries = await list_growth_entries(db, user_id, registry_id)

    if not entries:
        raise StorefrontError("No growth data available. Please add at least one growth entry.")

    latest = entries[0]
    birth_date = latest.child_birth_date or registry.event_date
    if not birth_date:
        raise StorefrontError("Child birth date is required for size prediction")

    age = age_in_months(birth_date, today)
    prediction = None

    if client.configured:
        try:
            raw = await client.complete_json(SYSTEM_PROMPT, _build_prompt(age, latest))
            if not isinstance(raw, dict):
                raise AIServiceError("AI response was not a JSON object")
            prediction = SizePrediction.model_validate({**raw, "source": "ai"})
        except AIServiceError as e:
            logger.warning(f"AI size prediction failed for registry {registry.id}, using fallback: {e.message}")
        except SchemaValidationError as e:
            logger.warning(f"AI size prediction had unexpected shape for registry {registry.id}, using fallback: {str(e)}")

    if prediction is None:
        prediction = generate_fallback_prediction(age, latest.height, latest.weight)

    registry.predicted_sizes = prediction.model_dump(mode="json")
    await db.commit()

    return prediction
