"""Research item payload validation.

Payloads are validated with one pydantic model per category under one of
two profiles:

- ``draft``: loose, only field types are checked
- ``verified``: the fields a claimed item must carry are required as well

Example:
    validator = SchemaValidator()
    validator.validate("publication", "article", item.data, profile="verified")
"""

from typing import Any, Dict, List, Literal, Mapping, Optional, Type, Union

import structlog
from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from research_ledger.models.category import AccomplishmentKind, CategoryType
from research_ledger.utils.exceptions import ValidationError

logger = structlog.get_logger()

Profile = Literal["draft", "verified"]
PROFILES = ("draft", "verified")


def _is_verified(info: ValidationInfo) -> bool:
    return bool(info.context) and info.context.get("profile") == "verified"


class ItemPayload(BaseModel):
    """Fields shared by every research item payload."""

    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    year: Optional[Union[int, str]] = None
    doi: Optional[str] = None
    abstract: Optional[str] = None

    @field_validator("year")
    @classmethod
    def validate_year(cls, v: Optional[Union[int, str]]) -> Optional[Union[int, str]]:
        if v is None:
            return v
        text = str(v).strip()
        if not text.isdigit() or len(text) != 4:
            raise ValueError("Year must be a four-digit number")
        return v

    @model_validator(mode="after")
    def check_verified_fields(self, info: ValidationInfo) -> "ItemPayload":
        if _is_verified(info):
            missing = [name for name in self.required_when_verified() if self._blank(name)]
            if missing:
                raise ValueError(f"Missing required fields: {', '.join(missing)}")
            self.check_verified()
        return self

    def required_when_verified(self) -> List[str]:
        return ["title", "year"]

    def check_verified(self) -> None:
        """Category-specific rules of the verified profile."""

    def _blank(self, name: str) -> bool:
        value = getattr(self, name, None)
        if value is None:
            return True
        return isinstance(value, str) and not value.strip()


class PublicationPayload(ItemPayload):
    source: Optional[Union[Dict[str, Any], str, int]] = None

    def check_verified(self) -> None:
        if self._blank("doi") and self._blank("source"):
            raise ValueError("A publication without DOI requires a source")


class AccomplishmentPayload(ItemPayload):
    eventType: Optional[Union[str, Dict[str, Any]]] = None


class EditorshipPayload(AccomplishmentPayload):
    """Editorships take their title from the edited source."""

    source: Optional[Dict[str, Any]] = None

    def required_when_verified(self) -> List[str]:
        return ["year"]

    def check_verified(self) -> None:
        title = (self.source or {}).get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValueError("Missing required fields: source.title")


class InvitedTalkPayload(ItemPayload):
    event: Optional[str] = None
    eventType: Optional[Union[str, Dict[str, Any]]] = None

    def required_when_verified(self) -> List[str]:
        return ["title", "year", "event", "eventType"]


class PatentPayload(ItemPayload):
    applicationNumber: Optional[str] = None
    filingDate: Optional[str] = None
    patentNumber: Optional[str] = None
    issueDate: Optional[str] = None

    def check_verified(self) -> None:
        if self._blank("applicationNumber") and self._blank("patentNumber"):
            raise ValueError("A patent requires an application number or a patent number")


_TYPE_MODELS: Dict[str, Type[ItemPayload]] = {
    CategoryType.PUBLICATION.value: PublicationPayload,
    CategoryType.ACCOMPLISHMENT.value: AccomplishmentPayload,
    CategoryType.INVITED_TALK.value: InvitedTalkPayload,
    CategoryType.PATENT.value: PatentPayload,
}

_KEY_MODELS: Dict[str, Type[ItemPayload]] = {
    AccomplishmentKind.EDITORSHIP.value: EditorshipPayload,
}


class SchemaValidator:
    """Validates research item payloads per category and profile."""

    def model_for(self, type_: str, key: Optional[str] = None) -> Type[ItemPayload]:
        if key and key in _KEY_MODELS:
            return _KEY_MODELS[key]
        return _TYPE_MODELS.get(type_, ItemPayload)

    def validate(
        self,
        type_: str,
        key: Optional[str],
        payload: Mapping[str, Any],
        profile: Profile = "verified",
    ) -> ItemPayload:
        """Validate a payload, raising ValidationError with field messages.

        Args:
            type_: Research item type family (e.g. "publication").
            key: Research item type key (e.g. "editorship").
            payload: The item's JSON data.
            profile: "draft" or "verified".

        Returns:
            The parsed payload model.
        """
        if profile not in PROFILES:
            raise ValueError(f"Unknown validation profile: {profile}")

        model = self.model_for(type_, key)
        try:
            return model.model_validate(dict(payload), context={"profile": profile})
        except PydanticValidationError as e:
            errors = [_format_error(err) for err in e.errors()]
            logger.info(
                "payload_validation_failed",
                type=type_,
                key=key,
                profile=profile,
                errors=errors,
            )
            raise ValidationError(errors=errors) from e


def _format_error(err: Mapping[str, Any]) -> str:
    loc = ".".join(str(part) for part in err.get("loc", ()))
    message = str(err.get("msg", "invalid value"))
    if message.startswith("Value error, "):
        message = message[len("Value error, ") :]
    return f"{loc}: {message}" if loc else message
