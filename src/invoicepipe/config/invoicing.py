# SPDX-License-Identifier: Apache-2.0
"""Pydantic configuration model for invoicing runs."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from invoicepipe.domain.calculator import VAT_RATE_CODES
from invoicepipe.domain.services import REGULATORY_WINDOW_DAYS
from invoicepipe.domain.value_objects import InvoiceConcept, InvoiceType, TradeDirection

PathLike = Union[str, Path]

# Configuration versioning constants
CURRENT_CONFIG_VERSION = "1"
MIN_SUPPORTED_VERSION = "1"

DEFAULT_TIMEZONE = "America/Argentina/Buenos_Aires"


class InvoicingConfig(BaseModel):
    """Settings for one point of sale.

    Loaded from YAML with snake_case or kebab-case keys. Credentials are not
    part of this model; they come from the environment (see
    ``invoicepipe.settings``).
    """

    model_config = ConfigDict(extra="forbid")

    config_version: str = Field(
        default=CURRENT_CONFIG_VERSION, description="Configuration schema version"
    )
    point_of_sale: int = Field(
        default=2, ge=1, le=99998, description="Authority point of sale number"
    )
    invoice_type: InvoiceType = Field(
        default=InvoiceType.C, description="Voucher type code (6 = B, 11 = C)"
    )
    concept: InvoiceConcept = Field(
        default=InvoiceConcept.SERVICES, description="1 products, 2 services, 3 both"
    )
    eligibility_window_days: int = Field(
        default=REGULATORY_WINDOW_DAYS,
        ge=0,
        le=REGULATORY_WINDOW_DAYS,
        description="Orders older than this many days are not invoiced",
    )
    backdating_days: Optional[int] = Field(
        default=None,
        ge=0,
        description="Max days an invoice date may be backdated (defaults to the concept limit)",
    )
    include_vat: bool = Field(default=False, description="Split VAT out of order totals")
    vat_rate: Decimal = Field(default=Decimal("0.21"), description="VAT rate when include_vat")
    direction: Optional[TradeDirection] = Field(
        default=TradeDirection.SELL, description="Trade side fetched from the order source"
    )
    sync_days: int = Field(default=7, ge=1, le=30, description="Days of history to fetch")
    timezone: str = Field(default=DEFAULT_TIMEZONE, description="IANA zone for calendar dates")
    database_path: str = Field(
        default="./data/invoicepipe.db", description="SQLite order store location"
    )
    transport: str = Field(default="sandbox", description="Registered invoicing transport")
    transport_options: Dict[str, Any] = Field(
        default_factory=dict, description="Keyword options passed to the transport"
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("vat_rate")
    @classmethod
    def validate_vat_rate(cls, v: Decimal) -> Decimal:
        if v not in VAT_RATE_CODES:
            raise ValueError(
                f"Unsupported VAT rate: {v}. Valid rates: {sorted(str(r) for r in VAT_RATE_CODES)}"
            )
        return v

    @field_validator("transport")
    @classmethod
    def validate_transport(cls, v: str) -> str:
        from invoicepipe.infrastructure.transports.registry import list_transports

        name = v.strip().lower()
        available = list_transports()
        if name not in available:
            raise ValueError(f"Unknown transport: {v}. Available transports: {available}")
        return name

    @model_validator(mode="after")
    def validate_invoice_settings(self) -> InvoicingConfig:
        """Invoice type must match VAT handling and backdating must respect the concept."""
        expected_type = InvoiceType.B if self.include_vat else InvoiceType.C
        if self.invoice_type is not expected_type:
            raise ValueError(
                f"invoice_type {int(self.invoice_type)} does not match "
                f"include_vat={self.include_vat} (expected {int(expected_type)})"
            )
        if self.include_vat and self.vat_rate == 0:
            raise ValueError("include_vat requires a non-zero vat_rate")
        if (
            self.backdating_days is not None
            and self.backdating_days > self.concept.max_backdating_days
        ):
            raise ValueError(
                f"backdating_days {self.backdating_days} exceeds the limit of "
                f"{self.concept.max_backdating_days} for concept {self.concept.name}"
            )
        return self

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def effective_backdating_days(self) -> int:
        if self.backdating_days is not None:
            return self.backdating_days
        return min(self.concept.max_backdating_days, self.eligibility_window_days)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
