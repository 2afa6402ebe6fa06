"""
Data models for property investment analysis.
These models define the structure for the submitted property, the generated
viability report and the stored records.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON the frontend and the orchestration webhook exchange.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PropertyType(str, Enum):
    """Kinds of property the form accepts."""

    APARTMENT = "Apartamento"
    HOUSE = "Casa"


class Recommendation(str, Enum):
    """Investment recommendation attached to every report."""

    BUY = "BUY"
    HOLD = "HOLD"
    PASS = "PASS"


class UserInfo(WireModel):
    """Applicant identity."""

    model_config = ConfigDict(frozen=True)

    first_name: str = Field(description="Applicant first name")
    last_name: str = Field(description="Applicant last name(s)")
    email: str = Field(description="Applicant email")


class PropertyInput(WireModel):
    """Property details submitted for analysis. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(default=None, description="Optional client-side identifier")
    user_info: UserInfo
    property_type: PropertyType = Field(default=PropertyType.APARTMENT)
    location: str = Field(description="Free-text location, e.g. 'Chamberí, Madrid'")
    title: str = Field(
        default="",
        validate_default=True,
        description="Listing title; generated as '<type> en <location>' when empty",
    )
    description: str = Field(default="", description="Free-text description")
    price: float = Field(ge=0, description="Asking price")
    currency: str = Field(default="EUR")
    size_m2: float = Field(ge=0, description="Built area in square meters")
    bedrooms: int = Field(default=0, ge=0)
    bathrooms: int = Field(default=0, ge=0)
    garage: int = Field(default=0, ge=0, description="Garage spaces")
    age_years: int = Field(default=5, ge=0, description="Building age in years")
    condition: str = Field(default="Bueno", description="Condition as chosen in the form")

    @field_validator("title")
    @classmethod
    def _default_title(cls, value: str, info: ValidationInfo) -> str:
        if value:
            return value
        property_type = info.data.get("property_type")
        location = info.data.get("location", "")
        type_label = property_type.value if isinstance(property_type, PropertyType) else "Inmueble"
        return f"{type_label} en {location}"


class FinancialMetrics(WireModel):
    """Headline investment metrics. Percentages are plain numbers (5.2 means 5.2%)."""

    model_config = ConfigDict(frozen=True)

    roi: FiniteFloat = Field(description="Estimated annual ROI (%)")
    cap_rate: FiniteFloat = Field(description="Capitalization rate (%)")
    monthly_cashflow: FiniteFloat = Field(description="Estimated monthly net cashflow")
    estimated_renovation_cost: FiniteFloat = Field(description="Estimated renovation cost")
    suggested_offer_price: FiniteFloat = Field(description="Recommended offer price")
    appreciation_forecast: FiniteFloat = Field(description="Expected annual appreciation (%)")


class MarketDataPoint(WireModel):
    """One labeled point of a chart series."""

    model_config = ConfigDict(frozen=True)

    label: str
    value: FiniteFloat


class MarketAnalysis(WireModel):
    """Chart series shown next to the report."""

    model_config = ConfigDict(frozen=True)

    price_evolution: list[MarketDataPoint] = Field(
        default_factory=list, description="Year vs average price per m2"
    )
    similar_listings: list[MarketDataPoint] = Field(
        default_factory=list, description="Category vs number of comparable listings"
    )


class AnalysisReport(WireModel):
    """Generated viability report. Created once per successful orchestration."""

    model_config = ConfigDict(frozen=True)

    id: str
    property_id: str
    metrics: FinancialMetrics
    market_data: MarketAnalysis = Field(default_factory=MarketAnalysis)
    viability_score: float = Field(ge=0, le=100, description="Investment attractiveness 0-100")
    recommendation: Recommendation
    html_content: str = Field(min_length=1, description="Pre-rendered narrative HTML")
    created_at: datetime


class PropertyRecord(PropertyInput):
    """A stored property with ownership metadata and its report."""

    id: str
    user_id: str
    created_at: datetime
    report: AnalysisReport | None = None
    saved: bool = Field(
        default=True, description="False for session-only records that failed to persist"
    )

    def to_input(self) -> PropertyInput:
        """Strip record metadata and return the submitted input (without its id)."""
        return PropertyInput.model_validate(
            self.model_dump(include=set(PropertyInput.model_fields) - {"id"})
        )
