"""SQLAlchemy models for all ledger tables."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from research_ledger.db.base import Base

KIND_DRAFT = "draft"
KIND_VERIFIED = "verified"
KIND_EXTERNAL = "external"

ENTITY_PERSON = "person"
ENTITY_GROUP = "group"

ROLE_GROUP_OWNER = "group_owner"

ORIGIN_OPEN_ALEX = "open_alex"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )


research_item_origin_identifier = Table(
    "research_item_origin_identifier",
    Base.metadata,
    Column(
        "research_item_id",
        Integer,
        ForeignKey("research_item.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "origin_identifier_id",
        Integer,
        ForeignKey("origin_identifier.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class ResearchItemType(Base):
    """Category of research item (article, patent, invited talk, ...)."""

    __tablename__ = "research_item_type"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    label: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class ResearchEntity(TimestampMixin, Base):
    """A person or a group that can claim research items."""

    __tablename__ = "research_entity"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # person | group
    code: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    aliases: Mapped[list["Alias"]] = relationship(
        "Alias",
        back_populates="research_entity",
        cascade="all, delete",
        order_by="Alias.id",
    )


class Alias(TimestampMixin, Base):
    """Alternate author-name string of a person entity."""

    __tablename__ = "alias"
    __table_args__ = (
        UniqueConstraint("research_entity_id", "value", name="unique_alias"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    research_entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_entity.id", ondelete="CASCADE"), nullable=False
    )
    value: Mapped[str] = mapped_column(String(100), nullable=False)
    main: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    research_entity: Mapped["ResearchEntity"] = relationship(
        "ResearchEntity", back_populates="aliases"
    )


class ResearchEntityRole(Base):
    """Role a person holds on a research entity (e.g. group_owner)."""

    __tablename__ = "research_entity_role"
    __table_args__ = (
        UniqueConstraint(
            "user_entity_id",
            "research_entity_id",
            "role_key",
            name="unique_research_entity_role",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_entity.id", ondelete="CASCADE"), nullable=False
    )
    research_entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_entity.id", ondelete="CASCADE"), nullable=False
    )
    role_key: Mapped[str] = mapped_column(String(64), nullable=False)


class OriginIdentifier(Base):
    """Identifier of an item in an external bibliographic source."""

    __tablename__ = "origin_identifier"
    __table_args__ = (
        UniqueConstraint("name", "identifier", name="unique_origin_identifier"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False, default=ORIGIN_OPEN_ALEX)
    identifier: Mapped[str] = mapped_column(String(255), nullable=False)


class ResearchItem(TimestampMixin, Base):
    """A unit of scholarly output."""

    __tablename__ = "research_item"
    __table_args__ = (
        CheckConstraint(
            "(kind = 'draft' AND creator_research_entity_id IS NOT NULL) "
            "OR (kind <> 'draft' AND creator_research_entity_id IS NULL)",
            name="research_item_creator_matches_kind",
        ),
        CheckConstraint(
            "kind IN ('draft', 'verified', 'external')",
            name="research_item_kind_values",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    research_item_type_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_item_type.id"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    creator_research_entity_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("research_entity.id", ondelete="CASCADE"), nullable=True
    )
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    research_item_type: Mapped["ResearchItemType"] = relationship("ResearchItemType")
    authors: Mapped[list["Author"]] = relationship(
        "Author",
        back_populates="research_item",
        cascade="all, delete",
        order_by="Author.position",
    )
    verified: Mapped[list["Verified"]] = relationship(
        "Verified", back_populates="research_item", cascade="all, delete"
    )
    duplicates: Mapped[list["Duplicate"]] = relationship(
        "Duplicate",
        foreign_keys="Duplicate.research_item_id",
        cascade="all, delete",
    )
    duplicated_by: Mapped[list["Duplicate"]] = relationship(
        "Duplicate",
        foreign_keys="Duplicate.duplicate_id",
        cascade="all, delete",
    )
    suggestions: Mapped[list["Suggested"]] = relationship(
        "Suggested", cascade="all, delete"
    )
    projection: Mapped[Optional["DuplicateSearchOptimization"]] = relationship(
        "DuplicateSearchOptimization", uselist=False, cascade="all, delete"
    )
    origin_identifiers: Mapped[list["OriginIdentifier"]] = relationship(
        "OriginIdentifier", secondary=research_item_origin_identifier
    )


class Institute(Base):
    __tablename__ = "institute"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)


class Verified(TimestampMixin, Base):
    """Claim of a research item by a research entity."""

    __tablename__ = "verified"
    __table_args__ = (
        UniqueConstraint("research_item_id", "research_entity_id", name="unique_verified"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    research_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_item.id", ondelete="CASCADE"), nullable=False
    )
    research_entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_entity.id", ondelete="CASCADE"), nullable=False
    )
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    research_item: Mapped["ResearchItem"] = relationship(
        "ResearchItem", back_populates="verified"
    )
    research_entity: Mapped["ResearchEntity"] = relationship("ResearchEntity")
    authors: Mapped[list["Author"]] = relationship("Author", back_populates="verified")


class Author(TimestampMixin, Base):
    """Ordered authorship slot on a research item."""

    __tablename__ = "author"
    __table_args__ = (
        UniqueConstraint(
            "research_item_id", "position", name="author_unique_research_item_position"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    research_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_item.id", ondelete="CASCADE"), nullable=False
    )
    verified_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("verified.id", ondelete="SET NULL"), nullable=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_corresponding_author: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_first_coauthor: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_last_coauthor: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_oral_presentation: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    research_item: Mapped["ResearchItem"] = relationship(
        "ResearchItem", back_populates="authors"
    )
    verified: Mapped[Optional["Verified"]] = relationship(
        "Verified", back_populates="authors"
    )
    affiliations: Mapped[list["Affiliation"]] = relationship(
        "Affiliation", back_populates="author", cascade="all, delete"
    )


class Affiliation(Base):
    __tablename__ = "affiliation"
    __table_args__ = (
        UniqueConstraint("author_id", "institute_id", name="unique_affiliation"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("author.id", ondelete="CASCADE"), nullable=False
    )
    institute_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("institute.id", ondelete="CASCADE"), nullable=False
    )

    author: Mapped["Author"] = relationship("Author", back_populates="affiliations")
    institute: Mapped["Institute"] = relationship("Institute")


class Duplicate(TimestampMixin, Base):
    """Directed duplicate edge, scoped to one entity's viewpoint.

    is_duplicate=False records a dismissed match and is never flipped back
    by automatic recalculation.
    """

    __tablename__ = "duplicate"
    __table_args__ = (
        UniqueConstraint(
            "research_item_id",
            "duplicate_id",
            "research_entity_id",
            name="unique_duplicate",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    research_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_item.id", ondelete="CASCADE"), nullable=False
    )
    duplicate_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_item.id", ondelete="CASCADE"), nullable=False
    )
    research_entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_entity.id", ondelete="CASCADE"), nullable=False
    )
    is_duplicate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Suggested(TimestampMixin, Base):
    """Candidate verification proposed to a research entity."""

    __tablename__ = "suggested"
    __table_args__ = (
        UniqueConstraint(
            "research_item_id", "research_entity_id", "type", name="unique_suggested"
        ),
        CheckConstraint(
            "type IN ('alias', 'membership', 'external', 'manual', 'other')",
            name="suggested_type_values",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    research_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_item.id", ondelete="CASCADE"), nullable=False
    )
    research_entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_entity.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    discarded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class DuplicateSearchOptimization(Base):
    """Denormalized projection of a research item for duplicate matching.

    Written only by ProjectionMaintainer.
    """

    __tablename__ = "duplicate_search_optimization"

    research_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_item.id", ondelete="CASCADE"), primary_key=True
    )
    research_item_type_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("research_item_type.id"), nullable=False, index=True
    )
    doi: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    title_string: Mapped[str] = mapped_column(Text, nullable=False, default="")
    title_string_length: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    authors_string: Mapped[str] = mapped_column(Text, nullable=False, default="")
    authors_string_length: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    event_string: Mapped[str] = mapped_column(Text, nullable=False, default="")
    event_string_length: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sub_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    application_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    filing_date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    patent_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    issue_date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    # sha256 of the watched payload fields at last recompute
    source_fingerprint: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
