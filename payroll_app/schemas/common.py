from decimal import Decimal
from typing import Annotated, Dict

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

# Money stays Decimal in Python and goes out as a JSON number
Money = Annotated[Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input; serializes camelCase."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TotalResponse(CamelModel):
    total: Money


class FeatureState(CamelModel):
    enabled: bool
    description: str


class FeatureListResponse(CamelModel):
    features: Dict[str, FeatureState]
