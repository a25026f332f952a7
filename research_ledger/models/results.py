"""Result models returned by ledger operations."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DuplicatePair(BaseModel):
    """A matching pair found by duplicate calculation."""

    research_item_id: int
    duplicate_id: int
    research_entity_id: int


class DuplicateUpdate(BaseModel):
    duplicate_id: int
    success: bool
    message: str


class DuplicatesUpdateResult(BaseModel):
    """Outcome of marking a list of duplicates as not duplicate."""

    success: bool = True
    updates: List[DuplicateUpdate] = Field(default_factory=list)


class SuggestionResult(BaseModel):
    """Per-item outcome of a manual suggestion."""

    research_item_id: int
    research_entity_id: int
    success: bool
    message: Optional[str] = None


class BulkSuccesses(BaseModel):
    count: int = 0
    ids: List[int] = Field(default_factory=list)


class BulkResult(BaseModel):
    """Outcome of a bulk action.

    `failures` maps an error code to the number of items that failed with it.
    """

    successes: BulkSuccesses = Field(default_factory=BulkSuccesses)
    failures: Dict[str, int] = Field(default_factory=dict)

    @property
    def failure_count(self) -> int:
        return sum(self.failures.values())


class AliasDeleteResult(BaseModel):
    success: bool
    message: str
    alias_value: Optional[str] = None
