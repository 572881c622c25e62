"""
Configuration Management for SiWarga

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Environment values are only the defaults.
The admin settings panel can change the storage connection and the
branding at runtime; those values are saved in the local key-value store
and take precedence (see src.config.runtime).
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageMode(str, Enum):
    """Where users and payments live."""
    LOCAL = "local"    # Demo mode, JSON file on this machine
    REMOTE = "remote"  # Apps Script web app in front of a Google Sheet


class RemoteStoreSettings(BaseSettings):
    """Remote (spreadsheet-backed) store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SIWARGA_REMOTE_",
        extra="ignore"
    )

    script_url: str = Field(
        default="",
        description="Deployed Apps Script web app URL"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=120,
        description="HTTP timeout for a single request"
    )

    @field_validator("script_url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        return v.strip()

    @property
    def is_configured(self) -> bool:
        return self.script_url.startswith("http")


class LocalStoreSettings(BaseSettings):
    """Local key-value store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SIWARGA_LOCAL_",
        extra="ignore"
    )

    data_path: str = Field(
        default=".siwarga/local_store.json",
        description="JSON file holding the local key-value store"
    )
    seed_demo_data: bool = Field(
        default=True,
        description="Serve demo users/payments until real data is written"
    )
    audit_log_limit: int = Field(
        default=500,
        ge=10,
        description="Maximum audit events kept in the local store"
    )


class SecuritySettings(BaseSettings):
    """Credential and settings-panel security configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SIWARGA_SECURITY_",
        extra="ignore"
    )

    default_settings_password: str = Field(
        default="KodeRahasia123!",
        description="Settings password used until an admin changes it"
    )
    max_unlock_attempts: int = Field(
        default=3,
        ge=1,
        description="Wrong settings passwords allowed before lockout"
    )
    lockout_seconds: int = Field(
        default=30,
        ge=1,
        description="How long the settings panel stays locked"
    )
    min_settings_password_length: int = Field(
        default=6,
        ge=1,
    )
    min_pin_length: int = Field(
        default=4,
        ge=1,
        description="Minimum PIN length at registration"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SIWARGA_",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    storage_mode: StorageMode = Field(
        default=StorageMode.LOCAL,
        description="Default storage mode before an admin picks one"
    )

    # Branding
    app_name: str = Field(default="SiWarga Aman")
    housing_name: str = Field(default="Perumahan Muslim Mutiara Darussalam")
    logo_url: str = Field(default="")

    # Dues
    default_dues_amount: int = Field(
        default=50000,
        gt=0,
        description="Pre-filled monthly dues in rupiah"
    )
    max_dues_amount: int = Field(
        default=10_000_000,
        gt=0,
        description="Maximum reasonable single payment (for sanity checking)"
    )

    # File upload limits
    max_upload_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum proof file size in MB"
    )
    supported_proof_formats: str = Field(
        default="jpg,jpeg,png,webp,gif,pdf",
        description="Comma-separated list of supported proof formats"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_proof_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def remote(self) -> RemoteStoreSettings:
        return RemoteStoreSettings()

    @property
    def local(self) -> LocalStoreSettings:
        return LocalStoreSettings()

    @property
    def security(self) -> SecuritySettings:
        return SecuritySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries for the ones that failed.
    """
    results = {}
    settings = get_settings()

    for name in ("remote", "local", "security", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
