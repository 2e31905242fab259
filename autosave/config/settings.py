"""
Configuration Management for Firefly Autosave

Uses pydantic-settings for type-safe configuration from environment
variables and a .env file. CLI options are passed in as init values and
therefore override both.

DESIGN DECISION: Settings are built exactly once per process by
load_settings() and handed to the flow as a frozen value. Nothing in the
package reads configuration on its own.
"""

from decimal import Decimal
from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


INTERNAL_TAG = "__autosave__"
DEFAULT_ENV_FILE = ".env"


class ConfigError(Exception):
    """A required parameter is missing or a value is invalid."""
    pass


class FireflySettings(BaseSettings):
    """Firefly III API connection."""

    model_config = SettingsConfigDict(
        env_prefix="FIREFLY_",
        env_file=DEFAULT_ENV_FILE,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    url: str = Field(
        ...,
        min_length=1,
        description="Base URL of the Firefly III instance (without /api/v1)"
    )
    token: str = Field(
        ...,
        min_length=1,
        description="Personal access token"
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for a single HTTP request"
    )
    page_size: int = Field(
        default=500,
        ge=1,
        le=1000,
        description="Items requested per page when listing"
    )
    read_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a read that fails at transport level (writes are never retried)"
    )

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def api_base_url(self) -> str:
        return f"{self.url}/api/v1"


class AutosaveSettings(BaseSettings):
    """
    Round-up policy settings.

    The env names follow the historic autosave script (ACCOUNT,
    DESTINATION, AMOUNT, ...), so existing .env files keep working.
    """

    model_config = SettingsConfigDict(
        env_file=DEFAULT_ENV_FILE,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    # Accounts
    source_account_id: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("source_account_id", "account"),
        description="Account whose withdrawals are scanned and which funds the transfer"
    )
    destination_account_id: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("destination_account_id", "destination"),
        description="Savings account receiving the transfer"
    )

    # Policy
    round_to: Decimal = Field(
        ...,
        validation_alias=AliasChoices("round_to", "amount"),
        description="Round every withdrawal up to a multiple of this; <= 0 disables autosave"
    )
    days: int = Field(
        default=0,
        ge=0,
        description="Lookback window in days; 0 scans from 2000-01-01"
    )
    min_balance: Decimal = Field(
        default=Decimal("20"),
        description="Balance after the withdrawal must be strictly above this"
    )
    exclude_keywords: str = Field(
        default="",
        description="Comma-separated tags that exclude a transaction"
    )
    only_type: Optional[str] = Field(
        default="withdrawal",
        description="Transaction type requested from the ledger"
    )

    # Created transfer
    autosave_tag: str = Field(
        default="autosave",
        min_length=1,
        description="Public tag put on every autosave transfer"
    )
    link_type_id: int = Field(
        default=1,
        gt=0,
        description="Link type used to connect original and autosave"
    )
    link_type_name: Optional[str] = Field(
        default=None,
        description="Link type name; resolved against the ledger and wins over link_type_id"
    )

    # Run behaviour
    dry_run: bool = Field(
        default=False,
        description="Log candidates only, never write"
    )
    stop_on_write_error: bool = Field(
        default=True,
        description="Abort the run on the first failed write"
    )
    verbose: bool = Field(
        default=False,
        description="Log silent skips as well"
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Renderer for log output"
    )

    @field_validator("round_to", "min_balance", mode="before")
    @classmethod
    def accept_decimal_comma(cls, v: Any) -> Any:
        """Accept "20,5" as well as "20.5"."""
        if isinstance(v, str):
            return v.strip().replace(",", ".")
        return v

    @field_validator("link_type_name", "only_type")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v

    @property
    def exclude_keywords_list(self) -> list[str]:
        """Get exclude keywords as a list, blanks dropped."""
        return [kw.strip() for kw in self.exclude_keywords.split(",") if kw.strip()]

    @property
    def internal_tag(self) -> str:
        return INTERNAL_TAG

    @property
    def autosave_tags(self) -> list[str]:
        return [self.autosave_tag, INTERNAL_TAG]


class Settings(BaseModel):
    """Root settings container, built once at startup."""

    model_config = ConfigDict(frozen=True)

    firefly: FireflySettings
    autosave: AutosaveSettings


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err["loc"]) or "settings"
        parts.append(f"{location}: {err['msg']}")
    return "; ".join(parts)


def load_settings(
    env_file: Optional[Union[str, Path]] = DEFAULT_ENV_FILE,
    firefly: Optional[dict[str, Any]] = None,
    autosave: Optional[dict[str, Any]] = None,
    require_env_file: bool = False,
) -> Settings:
    """
    Build the settings for one run.

    Args:
        env_file: .env file to read. A missing file is ignored unless
                  require_env_file is set.
        firefly: Overrides for FireflySettings (field names as keys).
        autosave: Overrides for AutosaveSettings (field names as keys).
        require_env_file: Raise ConfigError if env_file does not exist.

    Raises:
        ConfigError: If a required parameter is missing or invalid.
    """
    if env_file is not None and require_env_file and not Path(env_file).is_file():
        raise ConfigError(f"Env file not found: {env_file}")

    firefly_values = {k: v for k, v in (firefly or {}).items() if v is not None}
    autosave_values = {k: v for k, v in (autosave or {}).items() if v is not None}

    try:
        return Settings(
            firefly=FireflySettings(_env_file=env_file, **firefly_values),
            autosave=AutosaveSettings(_env_file=env_file, **autosave_values),
        )
    except ValidationError as e:
        raise ConfigError(
            f"Missing or invalid parameters ({_describe_validation_error(e)}). "
            "Check .env or CLI options."
        ) from e
