"""Process-wide configuration, read once from the environment / .env."""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SYSTEM_ID_TESTNET = "iJhCezBExJHvtyH3fGhNnt2NhU4Ztkf2yq"

# Wallet deeplink constants (lowercased wallet VDXF key is the URI scheme)
WALLET_SCHEME = "i5jtwbp6zymeay9llnraglgjqgdrffsau4"
GENERIC_REQUEST_KEY = "iLPcCsvRUxUjS5PJnxfCGz9ZYMypp8nSE5"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # RPC
    rpc_host: str = "localhost"
    rpc_port: int = 18843
    rpc_user: str = ""
    rpc_password: str = ""
    rpc_timeout: float = 30.0

    # UI server
    ui_port: int = Field(default=3000, validation_alias=AliasChoices("UI_PORT", "PORT"))

    # Chain / wallet
    system_id: str = SYSTEM_ID_TESTNET
    wallet_scheme: str = WALLET_SCHEME
    generic_request_key: str = GENERIC_REQUEST_KEY

    @field_validator("rpc_host", mode="before")
    @classmethod
    def _default_blank_host(cls, v: Optional[str]) -> str:
        if v is None or not str(v).strip():
            return "localhost"
        return str(v).strip()

    @property
    def rpc_url(self) -> str:
        return f"http://{self.rpc_host}:{self.rpc_port}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
