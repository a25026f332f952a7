from typing import Literal

from pydantic import BaseModel, Field, field_validator


class DatabaseSettings(BaseModel):
    """Relational store connection settings"""

    url: str = Field(
        "sqlite:///research_ledger.db",
        min_length=1,
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(False, description="Log emitted SQL statements")
    pool_pre_ping: bool = True

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if "://" not in v:
            raise ValueError("Database URL must include a dialect, e.g. sqlite://")
        return v


class LoggingSettings(BaseModel):
    """Structured logging settings"""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = True

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class LedgerConfig(BaseModel):
    """Root configuration model"""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
