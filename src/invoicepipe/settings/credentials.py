# SPDX-License-Identifier: Apache-2.0
"""Credential settings for the external services InvoicePipe talks to.

Settings classes load from environment variables (and a local ``.env``
file). Nothing in the core reads the environment; the CLI builds these
once and calls ``require()`` before a run starts.

Environment Variables:
    AFIP_CUIT: Tax ID of the issuing taxpayer
    AFIP_CERT_PATH: Path to the authority certificate (production only)
    AFIP_KEY_PATH: Path to the certificate private key (production only)
    AFIP_ENVIRONMENT: ``testing`` or ``production``
    BINANCE_API_KEY: Binance API key
    BINANCE_SECRET_KEY: Binance API secret
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from invoicepipe.domain.errors import ConfigurationError, ValidationError
from invoicepipe.domain.value_objects import TaxId

_ENVIRONMENTS = {"testing", "production"}


class AuthorityCredentials(BaseSettings):
    """Tax authority (AFIP) issuer identity and certificate."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        populate_by_name=True,
        extra="ignore",
    )

    cuit: Optional[str] = Field(None, alias="AFIP_CUIT", description="Issuer tax ID")
    cert_path: Optional[str] = Field(None, alias="AFIP_CERT_PATH", description="Certificate file")
    key_path: Optional[str] = Field(None, alias="AFIP_KEY_PATH", description="Private key file")
    environment: str = Field("testing", alias="AFIP_ENVIRONMENT", description="testing|production")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in _ENVIRONMENTS:
            raise ValueError(f"Unknown environment: {v}. Valid: {sorted(_ENVIRONMENTS)}")
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def tax_id(self) -> TaxId:
        return TaxId(self.cuit or "")

    def require(self) -> AuthorityCredentials:
        """Check the credentials are complete.

        Raises:
            ConfigurationError: Listing the missing or invalid variables
        """
        missing = []
        if not self.cuit:
            missing.append("AFIP_CUIT")
        if self.is_production:
            if not self.cert_path or not Path(self.cert_path).is_file():
                missing.append("AFIP_CERT_PATH")
            if not self.key_path or not Path(self.key_path).is_file():
                missing.append("AFIP_KEY_PATH")
        if missing:
            raise ConfigurationError(
                f"Missing authority credentials: {', '.join(missing)}", missing=missing
            )
        try:
            TaxId(self.cuit)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid AFIP_CUIT: {e}", missing=["AFIP_CUIT"]) from e
        return self


class BinanceCredentials(BaseSettings):
    """Binance API key pair used to read P2P order history."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        populate_by_name=True,
        extra="ignore",
    )

    api_key: Optional[str] = Field(None, alias="BINANCE_API_KEY", description="API key")
    secret_key: Optional[str] = Field(None, alias="BINANCE_SECRET_KEY", description="API secret")
    base_url: str = Field(
        "https://api.binance.com", alias="BINANCE_BASE_URL", description="REST API base URL"
    )

    def require(self) -> BinanceCredentials:
        required = (("BINANCE_API_KEY", self.api_key), ("BINANCE_SECRET_KEY", self.secret_key))
        missing = [name for name, value in required if not value]
        if missing:
            raise ConfigurationError(
                f"Missing Binance credentials: {', '.join(missing)}", missing=missing
            )
        return self
