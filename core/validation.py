"""
Input models for profile, listing, message and search payloads.

Raising goes through `parse`, which turns pydantic errors into the
engine's ValidationError so callers see one exception type.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from core.errors import ValidationError

PropertyType = Literal['apartment', 'house', 'room', 'co-living', 'studio']
CurrencyCode = Field(default='USD', pattern=r'^[A-Z]{3}$')

ModelT = TypeVar('ModelT', bound=BaseModel)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _tidy(value: Any) -> Any:
    """Trim and collapse inner whitespace; non-strings pass through to type checking."""
    if isinstance(value, str):
        return " ".join(value.split())
    return value


def _tidy_labels(values: List[str]) -> List[str]:
    """Tidy each label, dropping blanks and case-insensitive duplicates."""
    tidied = []
    seen = set()
    for value in values:
        label = _tidy(value)
        if label and label.lower() not in seen:
            seen.add(label.lower())
            tidied.append(label)
    return tidied


class TenantProfileInput(BaseModel):
    """Tenant preferences as submitted by the tenant."""
    target_cities: List[str] = Field(default_factory=list)
    target_countries: List[str] = Field(default_factory=list)
    neighborhoods: List[str] = Field(default_factory=list)

    min_budget: Decimal = Field(ge=0)
    max_budget: Decimal = Field(ge=0)
    currency: str = CurrencyCode

    property_types: List[PropertyType] = Field(default_factory=list)
    min_bedrooms: int = Field(default=1, ge=0, le=20)
    max_bedrooms: Optional[int] = Field(default=None, ge=0, le=20)

    move_in_date: datetime
    move_in_flexibility_days: int = Field(default=7, ge=0, le=365)
    min_stay_months: int = Field(default=6, ge=1, le=120)
    max_stay_months: Optional[int] = Field(default=None, ge=1, le=120)

    wants_furnished: Optional[bool] = None
    has_pets: Optional[bool] = None
    smokes: Optional[bool] = None
    prefers_quiet: Optional[bool] = None

    required_amenities: List[str] = Field(default_factory=list)
    preferred_amenities: List[str] = Field(default_factory=list)

    bio: Optional[str] = Field(default=None, max_length=500)
    age: Optional[int] = Field(default=None, ge=18, le=100)
    occupation: Optional[str] = Field(default=None, max_length=100)
    languages: List[str] = Field(default_factory=list)

    @field_validator('target_cities', 'target_countries', 'neighborhoods', 'required_amenities', 'preferred_amenities')
    @classmethod
    def tidy_labels(cls, values: List[str]) -> List[str]:
        return _tidy_labels(values)

    @field_validator('move_in_date')
    @classmethod
    def move_in_not_in_past(cls, value: datetime, info: ValidationInfo) -> datetime:
        value = _as_utc(value)
        context = info.context or {}
        now = context.get('now')
        if context.get('check_move_in', True) and now is not None and value.date() < now.date():
            raise ValueError("move_in_date cannot be in the past")
        return value

    @model_validator(mode='after')
    def check_ranges(self):
        if self.min_budget > self.max_budget:
            raise ValueError("min_budget must not exceed max_budget")
        if self.max_bedrooms is not None and self.min_bedrooms > self.max_bedrooms:
            raise ValueError("min_bedrooms must not exceed max_bedrooms")
        if self.max_stay_months is not None and self.min_stay_months > self.max_stay_months:
            raise ValueError("min_stay_months must not exceed max_stay_months")
        return self


class ListingInput(BaseModel):
    """Listing attributes as submitted by the landlord."""
    title: str = Field(min_length=10, max_length=200)
    description: Optional[str] = None
    property_type: PropertyType

    address: Optional[str] = None
    city: str = Field(min_length=1, max_length=100)
    country: str = Field(min_length=1, max_length=100)
    neighborhood: Optional[str] = Field(default=None, max_length=100)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    rent_amount: Decimal = Field(gt=0)
    currency: str = CurrencyCode
    deposit_amount: Optional[Decimal] = Field(default=None, ge=0)
    utilities_included: bool = False

    bedrooms: int = Field(ge=0, le=20)
    bathrooms: int = Field(ge=0, le=20)
    square_meters: Optional[int] = Field(default=None, gt=0)
    furnished: bool = False
    pet_friendly: bool = False
    smoking_allowed: bool = False
    quiet_building: Optional[bool] = None

    amenities: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)

    available_from: datetime
    available_to: Optional[datetime] = None
    min_stay_months: int = Field(default=1, ge=1, le=120)
    max_stay_months: Optional[int] = Field(default=None, ge=1, le=120)
    listing_expires_at: Optional[datetime] = None

    @field_validator('city', 'country', 'neighborhood', mode='before')
    @classmethod
    def tidy_location(cls, value: Any) -> Any:
        return _tidy(value)

    @field_validator('amenities')
    @classmethod
    def tidy_amenities(cls, values: List[str]) -> List[str]:
        return _tidy_labels(values)

    @field_validator('available_from', 'available_to', 'listing_expires_at')
    @classmethod
    def normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @model_validator(mode='after')
    def check_ranges(self):
        if self.available_to is not None and self.available_from > self.available_to:
            raise ValueError("available_from must not be after available_to")
        if self.max_stay_months is not None and self.min_stay_months > self.max_stay_months:
            raise ValueError("min_stay_months must not exceed max_stay_months")
        return self


class MessageInput(BaseModel):
    body: str = Field(min_length=1, max_length=2000)
    message_type: Literal['text', 'image', 'document'] = 'text'
    attachments: List[str] = Field(default_factory=list, max_length=10)

    @field_validator('body')
    @classmethod
    def body_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message body cannot be blank")
        return value


class ListingSearchFilters(BaseModel):
    """Structured listing search; not a free-text query."""
    city: Optional[str] = None
    country: Optional[str] = None
    property_type: Optional[PropertyType] = None
    min_rent: Optional[Decimal] = Field(default=None, ge=0)
    max_rent: Optional[Decimal] = Field(default=None, ge=0)
    min_bedrooms: Optional[int] = Field(default=None, ge=0)
    max_bedrooms: Optional[int] = Field(default=None, ge=0)
    furnished: Optional[bool] = None
    pet_friendly: Optional[bool] = None
    available_from: Optional[datetime] = None
    sort_by: Literal['rent', 'created', 'popularity'] = 'created'
    sort_order: Literal['asc', 'desc'] = 'desc'
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @field_validator('available_from')
    @classmethod
    def normalize_available_from(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


def parse(model: Type[ModelT], data: Any, context: Optional[Dict[str, Any]] = None) -> ModelT:
    """Validate data against a model, raising ValidationError on failure."""
    if isinstance(data, model):
        data = data.model_dump()
    try:
        return model.model_validate(data, context=context)
    except pydantic.ValidationError as e:
        errors = [
            {'field': ".".join(str(p) for p in err['loc']), 'message': err['msg']}
            for err in e.errors()
        ]
        summary = "; ".join(f"{err['field'] or 'input'}: {err['message']}" for err in errors)
        raise ValidationError(f"Invalid {model.__name__}: {summary}", details=errors) from e
