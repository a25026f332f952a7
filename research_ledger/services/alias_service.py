"""Author-name aliases of person entities.

Every change to an entity's alias set recomputes its alias suggestions.
"""

from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from research_ledger.db.tables import Alias, ResearchEntity
from research_ledger.models.results import AliasDeleteResult
from research_ledger.services.suggestion_service import SuggestionService
from research_ledger.utils.exceptions import NotFoundResearchEntityError, ValidationError

logger = structlog.get_logger()


class AliasService:
    def __init__(self, session: Session, suggestions: Optional[SuggestionService] = None):
        self.session = session
        self.suggestions = suggestions or SuggestionService(session)

    def get_aliases(self, research_entity_id: int) -> List[Alias]:
        return list(
            self.session.scalars(
                select(Alias)
                .where(Alias.research_entity_id == research_entity_id)
                .order_by(Alias.id)
            )
        )

    def create_default_alias(self, entity: ResearchEntity) -> Alias:
        """Create the main "name surname" alias of a new person entity."""
        data = entity.data or {}
        value = f"{data.get('name', '')} {data.get('surname', '')}".strip()
        if not value:
            raise ValidationError(
                "Person entities need a name to derive their main alias",
                research_entity_id=entity.id,
            )

        alias = Alias(research_entity_id=entity.id, value=value, main=True)
        self.session.add(alias)
        self.session.flush()
        logger.info("default_alias_created", research_entity_id=entity.id, alias=value)
        return alias

    def add_alias(self, research_entity_id: int, value: str, main: bool = False) -> Alias:
        """Add an alias and recompute the entity's alias suggestions.

        Raises:
            NotFoundResearchEntityError: The entity does not exist.
            ValidationError: The value is empty or already an alias.
        """
        if self.session.get(ResearchEntity, research_entity_id) is None:
            raise NotFoundResearchEntityError(research_entity_id=research_entity_id)
        if not value or not value.strip():
            raise ValidationError(
                "Alias value cannot be empty", research_entity_id=research_entity_id
            )

        alias = Alias(research_entity_id=research_entity_id, value=value, main=main)
        try:
            with self.session.begin_nested():
                self.session.add(alias)
        except IntegrityError as e:
            raise ValidationError(
                f"Alias already exists: {value}", research_entity_id=research_entity_id
            ) from e

        logger.info("alias_added", research_entity_id=research_entity_id, alias=value)
        self.suggestions.calculate_alias_suggestions(research_entity_id)
        return alias

    def delete_alias(self, alias_id: int) -> AliasDeleteResult:
        alias = self.session.get(Alias, alias_id)
        if alias is None:
            return AliasDeleteResult(success=False, message="Alias not found")

        research_entity_id = alias.research_entity_id
        value = alias.value
        self.session.delete(alias)
        self.session.flush()

        logger.info("alias_deleted", research_entity_id=research_entity_id, alias=value)
        self.suggestions.calculate_alias_suggestions(research_entity_id)
        return AliasDeleteResult(
            success=True, message=f"Alias {value} deleted", alias_value=value
        )
