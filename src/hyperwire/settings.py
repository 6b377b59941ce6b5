from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr

MAINNET_API_URL = "https://api.hyperliquid.xyz"
TESTNET_API_URL = "https://api.hyperliquid-testnet.xyz"
LOCAL_API_URL = "http://localhost:3001"

_BASE_URLS = {
    "mainnet": MAINNET_API_URL,
    "testnet": TESTNET_API_URL,
    "local": LOCAL_API_URL,
}


class NetworkSettings(BaseModel):
    name: Literal["mainnet", "testnet", "local"] = "mainnet"
    base_url: str | None = None

    model_config = {"extra": "forbid"}

    @property
    def api_url(self) -> str:
        return (self.base_url or _BASE_URLS[self.name]).rstrip("/")

    @property
    def ws_url(self) -> str:
        url = self.api_url
        if url.startswith("https://"):
            return "wss://" + url[len("https://") :] + "/ws"
        if url.startswith("http://"):
            return "ws://" + url[len("http://") :] + "/ws"
        return url + "/ws"

    @property
    def is_mainnet(self) -> bool:
        return self.api_url == MAINNET_API_URL


class AccountSettings(BaseModel):
    private_key: SecretStr | None = None
    account_address: str | None = None
    vault_address: str | None = None

    model_config = {"extra": "forbid"}


class DispatchSettings(BaseModel):
    request_timeout: float = Field(default=10.0, gt=0)
    expires_after_ms: int | None = Field(default=None, gt=0)

    model_config = {"extra": "forbid"}


class StreamSettings(BaseModel):
    ping_interval: float = Field(default=50.0, gt=0)
    pong_timeout: float = Field(default=60.0, gt=0)
    resubscribe_ack_timeout: float = Field(default=10.0, gt=0)
    require_ack: bool = True

    model_config = {"extra": "forbid"}


class BackoffSettings(BaseModel):
    base_delay: float = Field(default=0.5, gt=0)
    max_delay: float = Field(default=30.0, gt=0)
    factor: float = Field(default=2.0, ge=1)
    jitter: float = Field(default=0.2, ge=0, lt=1)
    max_attempts: int | None = Field(default=10, ge=1)
    max_elapsed: float | None = Field(default=None, gt=0)

    model_config = {"extra": "forbid"}


class Settings(BaseModel):
    env: str = "dev"
    network: NetworkSettings = Field(default_factory=NetworkSettings)
    account: AccountSettings = Field(default_factory=AccountSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    backoff: BackoffSettings = Field(default_factory=BackoffSettings)

    model_config = {"extra": "forbid"}

    def redacted(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        account = data.get("account")
        if isinstance(account, dict) and account.get("private_key") is not None:
            account["private_key"] = "***"
        return data
