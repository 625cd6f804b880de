"""
Pydantic schemas shared by adapters, the aggregator and the API.
"""
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from insight_engine.core.api_errors import ErrorCode
from insight_engine.core.api_registry import ServiceName


class Address(BaseModel):
    """Street address as entered by the agent."""
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=2, max_length=2)
    zip: str = Field(..., min_length=3, max_length=10)

    @field_validator("state")
    @classmethod
    def upper_state(cls, v: str) -> str:
        return v.upper()

    def city_state_zip(self) -> str:
        return f"{self.city}, {self.state} {self.zip}"

    def one_line(self) -> str:
        return f"{self.street}, {self.city_state_zip()}"


class SourceRecord(BaseModel):
    """
    One provider's result translated into the common shape.

    `facts` holds canonical fields that several providers can supply and
    that are merged by precedence. `extras` holds fields only this provider
    has; they are kept under the provider's own namespace.
    """
    service: ServiceName
    facts: Dict[str, Any] = Field(default_factory=dict)
    extras: Dict[str, Any] = Field(default_factory=dict)
    is_fallback: bool = False
    message: Optional[str] = None


class ProviderError(BaseModel):
    service: ServiceName
    code: ErrorCode
    message: str


class ProviderResult(BaseModel):
    """Outcome of one adapter call: exactly one of data/error is set."""
    service: ServiceName
    data: Optional[SourceRecord] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.data is not None


class DataQuality(BaseModel):
    score: int = Field(..., ge=0, le=100)
    source_count: int = Field(..., ge=0)
    confidence: Literal["Low", "Medium", "High"]


class Reliability(BaseModel):
    level: Literal["low", "medium", "high"]
    available_sources: int
    fallback_sources: int
    errors: int
    confidence: int


class Comparable(BaseModel):
    """A nearby sold or listed property used for pricing."""
    address: str
    zip: Optional[str] = None
    source: ServiceName
    confidence: int
    price: Optional[float] = None
    sale_date: Optional[str] = None
    distance: Optional[float] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    sqft: Optional[float] = None
    year_built: Optional[int] = None
    adjusted_price: Optional[float] = None

    def dedup_key(self) -> str:
        street = " ".join(self.address.lower().replace(",", " ").split())
        return f"{street}-{self.zip or ''}"


class SubjectProperty(BaseModel):
    """The property comparables are searched around."""
    address: Optional[str] = None
    zip: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    property_type: Optional[str] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    sqft: Optional[float] = None
    year_built: Optional[int] = None
    valuation_id: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @classmethod
    def from_record(cls, record: "AggregatedRecord") -> "SubjectProperty":
        facts = record.facts
        valuation = record.extras.get(ServiceName.VALUATION.value, {})
        property_id = valuation.get("property_id")
        return cls(
            address=facts.get("address"),
            zip=facts.get("zip"),
            latitude=facts.get("latitude"),
            longitude=facts.get("longitude"),
            property_type=facts.get("property_type"),
            bedrooms=facts.get("bedrooms"),
            bathrooms=facts.get("bathrooms"),
            sqft=facts.get("sqft"),
            year_built=facts.get("year_built"),
            valuation_id=str(property_id) if property_id is not None else None,
        )


class SaleRecord(BaseModel):
    recording_date: Optional[str] = None
    sale_date: Optional[str] = None
    document_type: Optional[str] = None
    grantor: Optional[str] = None
    grantee: Optional[str] = None
    sale_price: Optional[float] = None
    sale_type: str = "Standard Sale"
    price_per_sqft: Optional[int] = None


class PermitRecord(BaseModel):
    permit_number: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    issued_date: Optional[str] = None
    status: Optional[str] = None
    estimated_cost: Optional[float] = None


class PropertyHistory(BaseModel):
    sales: List[SaleRecord] = Field(default_factory=list)
    price_changes: List[Dict[str, Any]] = Field(default_factory=list)
    permits: List[PermitRecord] = Field(default_factory=list)


class AggregatedRecord(BaseModel):
    """Merged property or region record returned to callers."""
    kind: Literal["property", "neighborhood"]
    query: Dict[str, Any] = Field(default_factory=dict)
    facts: Dict[str, Any] = Field(default_factory=dict)
    field_sources: Dict[str, ServiceName] = Field(default_factory=dict)
    extras: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    sources: List[ServiceName] = Field(default_factory=list)
    fallback_sources: List[ServiceName] = Field(default_factory=list)
    data_quality: DataQuality
    errors: List[ProviderError] = Field(default_factory=list)
    comparables: Optional[List[Comparable]] = None
    history: Optional[PropertyHistory] = None
    tax_history: Optional[Dict[str, Any]] = None
    reliability: Optional[Reliability] = None

    @property
    def is_fallback(self) -> bool:
        """True when no real provider contributed anything."""
        return not self.sources and bool(self.fallback_sources)


class ForecastPoint(BaseModel):
    month: int
    change_percent: float
    predicted_price: Optional[int] = None


class MarketForecast(BaseModel):
    region: str
    months: int
    sources: List[str] = Field(default_factory=list)
    predictions: List[ForecastPoint] = Field(default_factory=list)
    confidence: int = 0
    factors: List[str] = Field(default_factory=list)
    is_fallback: bool = False
    message: Optional[str] = None
