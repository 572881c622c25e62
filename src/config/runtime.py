"""
Runtime Configuration

Connection and branding values the admin edits in the settings panel.
They are saved in the local key-value store (keys below) and override the
environment defaults from src.config.settings.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.config.settings import AppSettings, RemoteStoreSettings, StorageMode
from src.services.storage.local import LocalKeyValueStore

DB_CONFIG_KEY = "siwarga_db_config"
APP_CONFIG_KEY = "siwarga_app_config"

# Values written by the first version of the app
_LEGACY_MODES = {"sheet": StorageMode.REMOTE, "local": StorageMode.LOCAL}


class ConnectionConfig(BaseModel):
    """Which store to use and where the remote one lives."""
    model_config = ConfigDict(populate_by_name=True)

    mode: StorageMode = StorageMode.LOCAL
    script_url: str = Field(default="", alias="scriptUrl")

    @field_validator("mode", mode="before")
    @classmethod
    def accept_legacy_mode(cls, v):
        if isinstance(v, str):
            return _LEGACY_MODES.get(v.strip().lower(), v)
        return v

    @field_validator("script_url", mode="before")
    @classmethod
    def strip_url(cls, v) -> str:
        return "" if v is None else str(v).strip()

    @property
    def has_valid_url(self) -> bool:
        return self.script_url.startswith("http")

    @property
    def is_remote(self) -> bool:
        return self.mode == StorageMode.REMOTE


class BrandingConfig(BaseModel):
    """Names and logo shown on the login screen and header."""
    model_config = ConfigDict(populate_by_name=True)

    app_name: str = Field(default="", alias="appName", max_length=100)
    housing_name: str = Field(default="", alias="housingName", max_length=200)
    logo_url: str = Field(default="", alias="logoUrl")


def load_connection_config(
    store: LocalKeyValueStore,
    app_settings: AppSettings,
    remote_settings: RemoteStoreSettings,
) -> ConnectionConfig:
    defaults = ConnectionConfig(mode=app_settings.storage_mode, script_url=remote_settings.script_url)
    saved = store.get_json(DB_CONFIG_KEY)
    if not isinstance(saved, dict):
        return defaults
    try:
        return ConnectionConfig.model_validate({**defaults.model_dump(by_alias=True), **saved})
    except ValueError:
        return defaults


def save_connection_config(store: LocalKeyValueStore, config: ConnectionConfig) -> None:
    store.set_json(DB_CONFIG_KEY, config.model_dump(mode="json", by_alias=True))


def load_branding_config(store: LocalKeyValueStore, app_settings: AppSettings) -> BrandingConfig:
    defaults = BrandingConfig(
        app_name=app_settings.app_name,
        housing_name=app_settings.housing_name,
        logo_url=app_settings.logo_url,
    )
    saved = store.get_json(APP_CONFIG_KEY)
    if not isinstance(saved, dict):
        return defaults
    try:
        return BrandingConfig.model_validate({**defaults.model_dump(by_alias=True), **saved})
    except ValueError:
        return defaults


def save_branding_config(store: LocalKeyValueStore, config: BrandingConfig) -> None:
    store.set_json(APP_CONFIG_KEY, config.model_dump(mode="json", by_alias=True))
