from app.schemas.menu import (
    ErrorResponse,
    MenuItem,
    MenuResult,
    SummarizeRequest,
)

__all__ = ["MenuItem", "MenuResult", "SummarizeRequest", "ErrorResponse"]
