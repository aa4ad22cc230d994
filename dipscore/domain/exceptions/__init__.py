"""Domain exceptions."""
from dipscore.domain.exceptions.domain_errors import (
    DomainError,
    FeedConnectionError,
    InvalidTimeframeError,
    TickParseError,
)

__all__ = [
    "DomainError",
    "FeedConnectionError",
    "InvalidTimeframeError",
    "TickParseError",
]
