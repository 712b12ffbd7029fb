"""
Domain models for Trefle plant data.

The API returns loosely shaped JSON, so plant records themselves stay as
plain dictionaries. These models cover the envelopes and value objects the
fetch pipeline relies on.
"""
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PageLinks(BaseModel):
    """Pagination links from a list response."""
    self_link: Optional[str] = Field(default=None, alias="self")
    first: Optional[str] = None
    prev: Optional[str] = None
    next: Optional[str] = None
    last: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = "allow"


class PageResponse(BaseModel):
    """Response envelope from any paginated list or search endpoint."""
    data: List[Any] = Field(default_factory=list)
    links: PageLinks = Field(default_factory=PageLinks)
    meta: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        extra = "allow"

    @classmethod
    def from_payload(cls, payload: Any) -> "PageResponse":
        """Build a page from a raw response, tolerating null data or links."""
        if not isinstance(payload, Mapping):
            return cls()
        return cls(
            data=payload.get("data") or [],
            links=payload.get("links") or {},
            meta=payload.get("meta") or {},
        )

    @property
    def has_next(self) -> bool:
        return bool(self.links.next)

    @property
    def total(self) -> Optional[int]:
        return self.meta.get("total")


@dataclass(frozen=True)
class NamedTaxon:
    """
    A genus or family reference reduced to its name.

    The detail endpoint returns these either as a mapping with a ``name``
    key or as a bare string; ``from_raw`` settles the shape once.
    """
    name: Optional[str] = None

    @classmethod
    def from_raw(cls, value: Any) -> "NamedTaxon":
        if isinstance(value, Mapping):
            return cls(name=value.get("name"))
        if not value:
            return cls()
        return cls(name=value)


@dataclass
class Batch:
    """Records spanning consecutive pages, written as one output file."""
    start_page: int
    end_page: int
    records: List[Dict[str, Any]] = field(default_factory=list)

    def filename(self, enriched: bool, extension: str) -> str:
        suffix = "_enriched" if enriched else ""
        return f"plants_pages_{self.start_page}-{self.end_page}{suffix}{extension}"


@dataclass
class CallResult:
    """Outcome of calling one endpoint and saving its response."""
    success: bool
    error: Optional[str] = None
    error_type: Optional[str] = None
    status_code: Optional[int] = None
    filepath: Optional[str] = None
