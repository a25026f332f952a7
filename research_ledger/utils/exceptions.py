"""Exception hierarchy for the research ledger.

Every domain failure raised by the verification workflow inherits from
LedgerError so callers can catch the whole family in one place:

```python
try:
    verification_service.verify_research_item(request)
except LedgerError as e:
    logger.warning("verification_rejected", code=e.code, **e.context())
```

Errors carry the research item and research entity ids they refer to so the
caller can render a message without re-querying the store.
"""

from typing import Any, Iterable, List, Optional


class LedgerError(Exception):
    """Base exception for all research ledger errors."""

    code = "LedgerError"
    default_message = "Research ledger error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        research_item_id: Optional[int] = None,
        research_entity_id: Optional[int] = None,
    ) -> None:
        super().__init__(message or self.default_message)
        self.research_item_id = research_item_id
        self.research_entity_id = research_entity_id

    def context(self) -> dict[str, Any]:
        """Return the ids this error refers to, omitting unknown ones."""
        ctx: dict[str, Any] = {}
        if self.research_item_id is not None:
            ctx["research_item_id"] = self.research_item_id
        if self.research_entity_id is not None:
            ctx["research_entity_id"] = self.research_entity_id
        return ctx


class ValidationError(LedgerError):
    """Payload or parameters failed validation

    Raised when:
    - A research item payload does not satisfy its category schema
    - Ids passed to an operation are not positive integers
    - Author lists are malformed
    """

    code = "ValidationError"
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[Iterable[str]] = None,
        **kwargs: Any,
    ) -> None:
        self.errors: List[str] = list(errors or [])
        if message is None and self.errors:
            message = "; ".join(self.errors)
        super().__init__(message, **kwargs)


class NotFoundError(LedgerError):
    """A referenced record does not exist."""

    code = "NotFoundError"
    default_message = "Record not found"


class NotFoundResearchItemError(NotFoundError):
    code = "NotFoundResearchItemError"
    default_message = "Research item not found"


class NotFoundResearchEntityError(NotFoundError):
    code = "NotFoundResearchEntityError"
    default_message = "Research entity not found"


class VerificationError(LedgerError):
    """Base for failures while claiming a research item."""

    code = "VerificationError"
    default_message = "Verification failed"


class VerificationAlreadyVerifiedError(VerificationError):
    """The entity (or the chosen author slot) already claims this item."""

    code = "VerificationAlreadyVerifiedError"
    default_message = "Research item already verified"


class VerificationMissingAffiliationError(VerificationError):
    code = "VerificationMissingAffiliationError"
    default_message = "At least one affiliation is required"


class VerificationMissingAuthorPositionError(VerificationError):
    """No author position given and none of the entity's aliases matched."""

    code = "VerificationMissingAuthorPositionError"
    default_message = "Author position could not be determined"


class VerificationMissingAuthorInPositionError(VerificationError):
    code = "VerificationMissingAuthorInPositionError"
    default_message = "No author in the selected position"


class VerificationIsDuplicateError(VerificationError):
    """The item has active duplicate edges for the verifying entity.

    Verification stays blocked until the duplicates are resolved or
    explicitly dismissed.
    """

    code = "VerificationIsDuplicateError"
    default_message = "Research item has unresolved duplicates"


class VerificationNotDraftCreatorError(VerificationError):
    code = "VerificationNotDraftCreatorError"
    default_message = "Only the draft creator can verify a draft"


class UnverificationError(LedgerError):
    """Base for failures while removing a claim."""

    code = "UnverificationError"
    default_message = "Unverification failed"


class UnverificationAlreadyVerifiedError(UnverificationError):
    """There was no verification to remove."""

    code = "UnverificationAlreadyVerifiedError"
    default_message = "Research item is not verified by this entity"


class ConfigValidationError(LedgerError):
    """Configuration validation failed"""

    code = "ConfigValidationError"
    default_message = "Invalid configuration"


INPUT_ERRORS = (ValidationError, NotFoundError)

VERIFICATION_ERRORS = (
    NotFoundResearchItemError,
    NotFoundResearchEntityError,
    ValidationError,
    VerificationError,
)

UNVERIFICATION_ERRORS = (
    ValidationError,
    UnverificationError,
)


def error_code(error: BaseException) -> str:
    """Classify an exception for reporting in bulk results."""
    if isinstance(error, LedgerError):
        return error.code
    return type(error).__name__
