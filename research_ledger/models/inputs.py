"""Input models for draft, verification and suggestion operations."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AffiliationInput(BaseModel):
    """An institute affiliation attached to an author slot."""

    institute_id: int = Field(..., gt=0)
    name: Optional[str] = None


class AuthorInput(BaseModel):
    """One authorship slot of a draft or imported item."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=255)
    position: int = Field(..., ge=0)
    affiliations: List[AffiliationInput] = Field(default_factory=list)
    is_corresponding_author: bool = False
    is_first_coauthor: bool = False
    is_last_coauthor: bool = False
    is_oral_presentation: bool = False


class DraftInput(BaseModel):
    """Payload for creating or updating a draft research item."""

    id: Optional[int] = None
    research_item_type_id: int = Field(..., gt=0)
    data: Dict[str, Any] = Field(default_factory=dict)
    authors: List[AuthorInput] = Field(default_factory=list)

    @field_validator("authors")
    @classmethod
    def validate_unique_positions(cls, v: List[AuthorInput]) -> List[AuthorInput]:
        positions = [a.position for a in v]
        if len(positions) != len(set(positions)):
            raise ValueError("Author positions must be unique")
        return v


class VerifyRequest(BaseModel):
    """Parameters of a verification (claim) of a research item."""

    research_item_id: int
    research_entity_id: int
    research_item_type_id: Optional[int] = None
    author_position: Optional[int] = None
    affiliations: Optional[List[AffiliationInput]] = None
    is_corresponding_author: Optional[bool] = None
    is_oral_presentation: Optional[bool] = None
    is_first_coauthor: Optional[bool] = None
    is_last_coauthor: Optional[bool] = None
    set_duplicates_false: bool = False


class SuggestionRequest(BaseModel):
    """A manual suggestion of one item to one entity."""

    research_item_id: int
    research_entity_id: int
