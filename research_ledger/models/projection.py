"""In-memory projection row used by duplicate matching."""

from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict


class ProjectionRow(BaseModel):
    """Normalized text and metadata of one research item.

    Mirrors a duplicate_search_optimization row, plus the item's
    OpenAlex origin identifiers which publication matching compares.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    research_item_id: int
    research_item_type_id: int
    origin_ids: FrozenSet[str] = frozenset()
    doi: Optional[str] = None
    title_string: str = ""
    title_string_length: int = 0
    authors_string: str = ""
    authors_string_length: int = 0
    event_string: str = ""
    event_string_length: int = 0
    year: Optional[int] = None
    sub_type: Optional[str] = None
    application_number: Optional[str] = None
    filing_date: Optional[str] = None
    patent_number: Optional[str] = None
    issue_date: Optional[str] = None
