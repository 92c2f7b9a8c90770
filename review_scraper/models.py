"""Data carried between pipeline stages."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict

TRUNCATION_MARKER = "[truncated]"


@dataclass(frozen=True)
class CapturedFrame:
    """One viewport-sized screenshot taken at `index * viewport_height`."""

    index: int
    offset: int
    image: bytes = field(repr=False)
    path: Path


class ReviewRecord(BaseModel):
    # Field values are passed through as the model wrote them; ratings are
    # not range-checked and bodies are not length-checked.
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    title: Optional[str] = None
    body: Optional[str] = None
    rating: Optional[Union[int, float, str]] = None
    reviewer: Optional[str] = None

    @property
    def is_truncated(self) -> bool:
        return bool(self.body) and self.body.rstrip().endswith(TRUNCATION_MARKER)


@dataclass
class ExtractionResult:
    reviews: List[ReviewRecord] = field(default_factory=list)
    # Set only when the vision model call failed
    error_details: Optional[dict] = None

    def to_response(self) -> dict:
        return {
            "reviews_count": len(self.reviews),
            "reviews": [review.model_dump() for review in self.reviews],
            "errorDetails": self.error_details,
        }
