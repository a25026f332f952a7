"""Research item categories and their similarity thresholds.

A category is a closed variant: the research item type family plus, for
accomplishments, the concrete accomplishment kind. Thresholds are fixed per
category and are never configurable at runtime.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CategoryType(str, Enum):
    """Research item type families."""

    PUBLICATION = "publication"
    ACCOMPLISHMENT = "accomplishment"
    INVITED_TALK = "invited_talk"
    PATENT = "patent"


class AccomplishmentKind(str, Enum):
    ORGANIZED_EVENT = "organized_event"
    AWARD_ACHIEVEMENT = "award_achievement"
    EDITORSHIP = "editorship"


class Thresholds(BaseModel):
    """Length-ratio and trigram-similarity thresholds for one field.

    Both are strict lower bounds: a pair matches only when the length ratio
    is greater than `length` and the similarity is greater than `similarity`.
    """

    model_config = ConfigDict(frozen=True)

    length: float = Field(..., ge=0.0, le=1.0)
    similarity: float = Field(..., ge=0.0, le=1.0)


TITLE_THRESHOLDS = Thresholds(length=0.9, similarity=0.7)
AUTHORS_THRESHOLDS = Thresholds(length=0.9, similarity=0.6)
EVENT_THRESHOLDS = Thresholds(length=0.6, similarity=0.6)
PATENT_TITLE_THRESHOLDS = Thresholds(length=0.7, similarity=0.5)


class Category(BaseModel):
    """A research item category with the thresholds its match rule uses."""

    model_config = ConfigDict(frozen=True)

    type: CategoryType
    kind: Optional[AccomplishmentKind] = None
    title: Thresholds = TITLE_THRESHOLDS
    authors: Thresholds = AUTHORS_THRESHOLDS
    event: Optional[Thresholds] = None

    @classmethod
    def from_type(cls, type_: str, key: Optional[str] = None) -> Optional["Category"]:
        """Resolve a research_item_type (type, key) pair to a category.

        Args:
            type_: Type family, e.g. "publication" or "accomplishment".
            key: Concrete type key, e.g. "article" or "editorship".

        Returns:
            The category, or None for types without a duplicate rule.
        """
        try:
            family = CategoryType(type_)
        except ValueError:
            return None

        if family is CategoryType.PUBLICATION:
            return PUBLICATION
        if family is CategoryType.INVITED_TALK:
            return INVITED_TALK
        if family is CategoryType.PATENT:
            return PATENT

        try:
            kind = AccomplishmentKind(key)
        except ValueError:
            return None
        return ACCOMPLISHMENTS[kind]

    @property
    def label(self) -> str:
        if self.kind is not None:
            return f"{self.type.value}_{self.kind.value}"
        return self.type.value


PUBLICATION = Category(type=CategoryType.PUBLICATION)

INVITED_TALK = Category(type=CategoryType.INVITED_TALK, event=EVENT_THRESHOLDS)

PATENT = Category(type=CategoryType.PATENT, title=PATENT_TITLE_THRESHOLDS)

ACCOMPLISHMENTS = {
    kind: Category(type=CategoryType.ACCOMPLISHMENT, kind=kind)
    for kind in AccomplishmentKind
}
