"""
Configuration settings for the Payment Import service.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator

from services.shared.settings import ServiceSettings


class PaymentImportSettings(ServiceSettings):
    """Configuration for the Payment Import service."""

    # Identity resolution
    placeholder_email_domain: str = Field(
        default="mailinator.com",
        description="Domain used for synthetic emails of anonymous donors"
    )

    default_payment_method: str = Field(
        default="stripe",
        description="Payment method stored on imported donations"
    )

    # CSV decoding
    csv_encoding: str = Field(
        default="utf-8",
        description="Primary character encoding for CSV exports"
    )

    csv_fallback_encodings: List[str] = Field(
        default_factory=lambda: ["utf-8-sig", "cp1252"],
        description="Encodings tried in order when the primary one fails"
    )

    # HTTP Client Configuration (for remote URL fetching)
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
        default="data/payment_import/reports",
        description="Directory for JSON import reports"
    )

    service_name: str = Field(
        default="payment-import",
        description="Service name for logging"
    )

    @field_validator("placeholder_email_domain")
    @classmethod
    def validate_placeholder_domain(cls, v):
        """Placeholder domain must look like a hostname."""
        v = v.strip().lstrip("@")
        if not v or "." not in v or " " in v:
            raise ValueError("placeholder_email_domain must be a domain such as 'example.org'")
        return v.lower()


@lru_cache()
def get_settings() -> PaymentImportSettings:
    """Get cached settings instance."""
    return PaymentImportSettings()


settings = get_settings
