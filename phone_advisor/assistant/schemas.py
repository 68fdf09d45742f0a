"""Pydantic models shared by the planning, execution, and synthesis stages."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import InvalidConditionError
from .series import translate_series_pattern


MAX_PLANS = 3


class FieldKind(str, Enum):
    """Storage type of a queryable catalogue column."""

    TEXT = "text"
    NUMBER = "number"
    TEXT_ARRAY = "text_array"


class QueryOperator(str, Enum):
    """Operators a plan condition may use. Values are the wire names."""

    EQUALS = "eq"
    LESS_OR_EQUAL = "lte"
    GREATER_OR_EQUAL = "gte"
    ILIKE = "ilike"
    OVERLAPS = "overlaps"
    CONTAINS = "cs"
    PATTERN = "regex"


PHONE_FIELDS: Mapping[str, FieldKind] = {
    "id": FieldKind.NUMBER,
    "brand": FieldKind.TEXT,
    "model": FieldKind.TEXT,
    "price": FieldKind.NUMBER,
    "release_year": FieldKind.NUMBER,
    "os": FieldKind.TEXT,
    "ram": FieldKind.TEXT,
    "storage": FieldKind.TEXT,
    "display_type": FieldKind.TEXT,
    "display_size": FieldKind.TEXT,
    "resolution": FieldKind.TEXT,
    "refresh_rate": FieldKind.NUMBER,
    "camera_main": FieldKind.TEXT,
    "camera_front": FieldKind.TEXT,
    "camera_features": FieldKind.TEXT_ARRAY,
    "battery": FieldKind.TEXT,
    "charging": FieldKind.TEXT,
    "processor": FieldKind.TEXT,
    "connectivity": FieldKind.TEXT_ARRAY,
    "sensors": FieldKind.TEXT_ARRAY,
    "features": FieldKind.TEXT_ARRAY,
    "weight": FieldKind.TEXT,
    "dimensions": FieldKind.TEXT,
    "rating": FieldKind.NUMBER,
    "stock_status": FieldKind.TEXT,
    "category": FieldKind.TEXT,
    "colours": FieldKind.TEXT_ARRAY,
}

_FIELD_ALIASES = {"colors": "colours", "color": "colours", "colour": "colours"}

ALLOWED_OPERATORS: Mapping[FieldKind, frozenset[QueryOperator]] = {
    FieldKind.TEXT: frozenset(
        {QueryOperator.EQUALS, QueryOperator.ILIKE, QueryOperator.PATTERN}
    ),
    FieldKind.NUMBER: frozenset(
        {
            QueryOperator.EQUALS,
            QueryOperator.LESS_OR_EQUAL,
            QueryOperator.GREATER_OR_EQUAL,
        }
    ),
    FieldKind.TEXT_ARRAY: frozenset({QueryOperator.OVERLAPS, QueryOperator.CONTAINS}),
}


def check_condition(field: str, operator: QueryOperator) -> FieldKind:
    """Return the field kind, raising when the field/operator pair is unsupported."""

    kind = PHONE_FIELDS.get(field)
    if kind is None:
        raise InvalidConditionError(f"Unknown catalogue field '{field}'.")
    if operator not in ALLOWED_OPERATORS[kind]:
        raise InvalidConditionError(
            f"Operator '{operator.value}' is not valid for {kind.value} field '{field}'."
        )
    return kind


def _normalise_field_name(raw: object) -> object:
    if not isinstance(raw, str):
        return raw
    name = raw.strip().lower()
    return _FIELD_ALIASES.get(name, name)


def _coerce_number(value: object) -> object:
    """Turn numeric strings such as ``"30,000"`` into numbers."""

    if isinstance(value, bool) or not isinstance(value, str):
        return value
    cleaned = value.replace(",", "").replace("₹", "").strip()
    try:
        number = float(cleaned)
    except ValueError:
        return value
    return int(number) if number.is_integer() else number


class QueryCondition(BaseModel):
    """A single ``field operator value`` filter applied by a plan."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., description="Catalogue column the condition targets.")
    operator: QueryOperator = Field(..., description="Comparison applied to the column.")
    value: int | float | str | List[str] = Field(
        ..., description="Scalar for text/number columns, list for array columns."
    )

    @model_validator(mode="before")
    @classmethod
    def _coerce_for_field_kind(cls, data: Any) -> Any:
        """Align loosely typed model output with the field's storage type."""

        if not isinstance(data, Mapping):
            return data

        payload = dict(data)
        payload["field"] = _normalise_field_name(payload.get("field"))
        operator = payload.get("operator")
        if isinstance(operator, str):
            operator = operator.strip().lower()
            payload["operator"] = operator
        kind = PHONE_FIELDS.get(payload["field"]) if isinstance(payload["field"], str) else None
        value = payload.get("value")

        if kind is FieldKind.TEXT_ARRAY:
            if operator == QueryOperator.ILIKE.value:
                payload["operator"] = QueryOperator.OVERLAPS.value
            if isinstance(value, str):
                value = [value]
            if isinstance(value, list):
                value = [str(item).strip("%").strip() for item in value if str(item).strip("%").strip()]
            payload["value"] = value
        elif kind is FieldKind.NUMBER:
            payload["value"] = _coerce_number(value)

        return payload

    @model_validator(mode="after")
    def _validate_against_schema(self) -> "QueryCondition":
        kind = check_condition(self.field, self.operator)
        if kind is FieldKind.TEXT_ARRAY:
            if not isinstance(self.value, list) or not self.value:
                raise ValueError(f"Array field '{self.field}' needs a non-empty list value.")
        elif kind is FieldKind.NUMBER:
            if isinstance(self.value, (list, str)):
                raise ValueError(f"Numeric field '{self.field}' needs a numeric value.")
        elif isinstance(self.value, list) or not str(self.value).strip("%").strip():
            raise ValueError(f"Text field '{self.field}' needs a non-empty text value.")
        elif self.operator is QueryOperator.PATTERN:
            translate_series_pattern(str(self.value))
        return self

    def describe(self) -> str:
        return f"{self.field} {self.operator.value} {self.value!r}"


class QueryPlan(BaseModel):
    """An executable filter expression derived from the user's intent."""

    model_config = ConfigDict(frozen=True)

    description: str = Field("", description="Human-readable summary of the plan.")
    conditions: List[QueryCondition] = Field(
        ..., min_length=1, description="Conditions applied in order."
    )


class QueryBatch(BaseModel):
    """All plans for one user turn plus the topicality classification."""

    model_config = ConfigDict(frozen=True)

    plans: List[QueryPlan] = Field(default_factory=list, max_length=MAX_PLANS)
    is_adversarial: bool = False
    is_off_topic: bool = False

    @model_validator(mode="after")
    def _require_plans_for_answerable_queries(self) -> "QueryBatch":
        if not self.plans and not (self.is_adversarial or self.is_off_topic):
            raise ValueError("An on-topic query batch needs at least one plan.")
        return self


class ExtractedSignal(BaseModel):
    """A structured fact mined from raw text by a pattern rule."""

    model_config = ConfigDict(frozen=True)

    field: str
    operator: Literal["=", "<=", ">="]
    value: int | float | str

    def __str__(self) -> str:
        return f"{self.field} {self.operator} {self.value}"


class PhoneRecord(BaseModel):
    """Read-only catalogue phone as retrieved from the store."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    brand: str
    model: str
    price: float
    release_year: Optional[int] = None
    os: Optional[str] = None
    ram: Optional[str] = None
    storage: Optional[str] = None
    display_type: Optional[str] = None
    display_size: Optional[str] = None
    resolution: Optional[str] = None
    refresh_rate: Optional[int] = None
    camera_main: Optional[str] = None
    camera_front: Optional[str] = None
    camera_features: Optional[List[str]] = None
    battery: Optional[str] = None
    charging: Optional[str] = None
    processor: Optional[str] = None
    connectivity: Optional[List[str]] = None
    sensors: Optional[List[str]] = None
    features: Optional[List[str]] = None
    weight: Optional[str] = None
    dimensions: Optional[str] = None
    rating: Optional[float] = None
    stock_status: Optional[str] = None
    category: Optional[str] = None
    colours: Optional[List[str]] = None

    @property
    def natural_key(self) -> Tuple[str, str, float]:
        return (self.brand, self.model, self.price)

    @property
    def display_name(self) -> str:
        return f"{self.brand} {self.model}"


class ConversationMessage(BaseModel):
    """One chat message supplied by the session layer."""

    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: Optional[float] = Field(
        None, description="Ordering key, epoch seconds or milliseconds."
    )

    @field_validator("timestamp", mode="before")
    @classmethod
    def _datetime_to_epoch(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.timestamp()
        return value


class ResponseMode(str, Enum):
    """How the reply for a turn is produced."""

    ADVERSARIAL = "adversarial"
    OFF_TOPIC = "off_topic"
    OPEN_ENDED = "open_ended"
    VAGUE = "vague"
    SPECIFIC = "specific"


__all__ = [
    "ALLOWED_OPERATORS",
    "ConversationMessage",
    "ExtractedSignal",
    "FieldKind",
    "MAX_PLANS",
    "PHONE_FIELDS",
    "PhoneRecord",
    "QueryBatch",
    "QueryCondition",
    "QueryOperator",
    "QueryPlan",
    "ResponseMode",
    "check_condition",
]
