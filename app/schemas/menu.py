from typing import Optional

from pydantic import BaseModel, Field


class MenuItem(BaseModel):
    """A single dish on a daily menu."""

    category: str = Field(..., description="Lower-cased category, e.g. 'polévka'")
    name: str
    price: float = Field(default=0.0, description="Price as a number, currency dropped")
    allergens: Optional[list[str]] = None
    weight: Optional[str] = Field(default=None, description="Normalized weight, e.g. '150g'")
    description: Optional[str] = None


class MenuResult(BaseModel):
    """Structured menu for one restaurant page and one date."""

    restaurant_name: str
    date: str = Field(..., description="Target date, YYYY-MM-DD")
    day_of_week: str
    menu_items: list[MenuItem] = Field(default_factory=list)
    daily_menu: bool = Field(
        default=True, description="Whether the source is a genuine per-day menu"
    )
    source_url: str


class SummarizeRequest(BaseModel):
    """Request schema for the summarize endpoint."""

    url: str = Field(
        ..., min_length=1, max_length=2048, description="Restaurant menu page URL"
    )
    date: Optional[str] = Field(
        default=None,
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        description="Target date (YYYY-MM-DD), defaults to today",
    )


class ErrorResponse(BaseModel):
    """Error body returned for failed lookups."""

    error: str = Field(..., description="Short, user-facing error summary")
    details: str = Field(default="", description="Underlying error message")
