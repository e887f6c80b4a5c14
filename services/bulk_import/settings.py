"""
Configuration settings for the bulk import engine.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BulkImportSettings(BaseSettings):
    """Configuration for the bulk import engine."""

    model_config = SettingsConfigDict(
        env_prefix="BULK_IMPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Identity normalization
    default_country_code: str = Field(
        default="972",
        description="Home country calling code used when normalizing phones"
    )

    trunk_prefix: str = Field(
        default="0",
        description="National trunk prefix written before local numbers"
    )

    match_donors_by_email: bool = Field(
        default=True,
        description="Fall back to email when a donor row matches no phone"
    )

    # Parsing
    csv_encodings: List[str] = Field(
        default=["utf-8-sig", "cp1255"],
        description="Encodings tried in order when decoding CSV uploads"
    )

    max_rows: int = Field(
        default=20000,
        ge=1,
        description="Maximum number of data rows accepted per file"
    )

    # Value defaults
    default_pledge_frequency: str = Field(
        default="monthly",
        description="Frequency used when a pledge row leaves it blank"
    )

    default_donation_type: str = Field(
        default="Regular",
        description="Donation type used when a donation row leaves it blank"
    )

    default_payment_method: str = Field(
        default="Cash",
        description="Payment method used when a donation row leaves it blank"
    )

    # Remote sources (uploaded files kept in object storage)
    http_timeout: float = Field(
        default=60.0,
        gt=0,
        description="HTTP request timeout in seconds"
    )

    http_max_retries: int = Field(
        default=3,
        ge=0,
        description="Maximum number of retry attempts"
    )

    # Reports
    reports_dir: str = Field(
        default="data/imports/reports",
        description="Directory for import reports and result CSVs"
    )

    @field_validator("default_country_code")
    @classmethod
    def validate_country_code(cls, v):
        """Country code must be digits only (no "+")."""
        cleaned = v.strip().lstrip("+")
        if not cleaned.isdigit():
            raise ValueError("default_country_code must contain digits only")
        return cleaned

    @field_validator("default_pledge_frequency")
    @classmethod
    def validate_pledge_frequency(cls, v):
        """Validate the default frequency is one pledges accept."""
        valid = {"monthly", "quarterly", "yearly", "one-time"}
        if v.lower() not in valid:
            raise ValueError(f"default_pledge_frequency must be one of: {', '.join(sorted(valid))}")
        return v.lower()


@lru_cache()
def get_settings() -> BulkImportSettings:
    """Get cached settings instance."""
    return BulkImportSettings()


settings = get_settings
