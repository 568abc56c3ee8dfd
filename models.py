from pydantic import BaseModel, Field, field_validator
from typing import Optional, Union
from enum import Enum
from urllib.parse import urlparse

Number = Union[int, float]


class ExtractionSource(str, Enum):
    SITE_EXTRACTION = "idealista:v1"
    LLM_ENRICHMENT = "openai:v2"


class AdministrativeCity(BaseModel):
    """A municipality as listed in the gazetteer (canonical spelling)."""
    region_code: int = Field(..., description="INE autonomous community code (1-19)")
    province_code: int = Field(..., description="INE province code (1-52)")
    name: str

    class Config:
        frozen = True


class AdministrativeProvince(BaseModel):
    province_code: int
    region_code: int
    name: str

    class Config:
        frozen = True


class ExtractionResult(BaseModel):
    """
    Attributes recovered from a single listing.

    Every field except ``source`` may be null; a result with all nulls is the
    normal outcome for unsupported hosts and failed fetches.
    """
    buy_price: Optional[Number] = Field(None, alias="buyPrice")
    sqm: Optional[Number] = None
    rooms: Optional[Number] = None
    bathrooms: Optional[Number] = None
    city: Optional[str] = None
    region_code: Optional[int] = Field(None, alias="regionCode")
    feature_text: Optional[str] = Field(None, alias="featureText")
    estimated_rent: Optional[int] = Field(None, alias="estimatedRent")
    source: ExtractionSource = ExtractionSource.SITE_EXTRACTION

    class Config:
        frozen = True
        populate_by_name = True

    @classmethod
    def empty(cls, source: ExtractionSource = ExtractionSource.SITE_EXTRACTION) -> "ExtractionResult":
        return cls(source=source)

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class LlmPropertyExtract(BaseModel):
    """
    Validated JSON reply of the enrichment model.

    All four keys must be present. Only real JSON numbers are accepted (no
    numeric strings, no booleans).
    """
    sqm: Optional[float] = Field(...)
    rooms: Optional[float] = Field(...)
    bathrooms: Optional[float] = Field(...)
    max_rent: float = Field(..., alias="maxRent", ge=0)

    class Config:
        populate_by_name = True
        strict = True


class RentMarketEntry(BaseModel):
    """Rent per square metre for one municipality, as scraped from a market report."""
    key: str
    region_code: int
    province_code: int
    city: str
    city_norm: str
    community_slug: str
    province_slug: str
    city_slug: str
    rent_per_sqm: float
    fetched_at: float = Field(..., description="Unix timestamp (seconds)")
    source: str = "idealista-report:v1"


class RentMarketLookupResult(BaseModel):
    cached: bool = False
    rent_per_sqm: Optional[float] = None


def _check_http_url(value: str) -> str:
    value = (value or "").strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("url must be an absolute http(s) URL")
    return value


# API request models
class AutofillRequest(BaseModel):
    url: str = Field(..., description="Listing URL")
    cookies: Optional[str] = Field(None, description="Optional Cookie header to reuse for the fetch")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        return _check_http_url(v)


class AutofillFromHtmlRequest(BaseModel):
    url: str = Field(..., description="Listing URL the HTML was captured from")
    html: str = Field(..., min_length=1, description="Raw listing HTML")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        return _check_http_url(v)
