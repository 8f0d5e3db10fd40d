from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_MAX_BODY_SIZE = 10 * 1000 * 1000


class Settings(BaseSettings):
    secret: str
    www_path: str = "/"
    www_host: str = "0.0.0.0"
    www_port: int = 8080
    max_body_size: int = Field(DEFAULT_MAX_BODY_SIZE, gt=0)
    keyfile: Path | None = None
    app_id: int = 2080
    installation_id: int = 20524
    github_api_url: str = "https://api.github.com"
    github_timeout: float = 5.0
    user_agent: str = "Xihi [Integration 2080]"
    log_level: str = "INFO"

    model_config = {"env_prefix": "XIHI_", "env_file": ".env", "extra": "ignore"}

    @field_validator("www_path")
    @classmethod
    def path_is_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("www_path must start with '/'")
        return value

    @property
    def secret_bytes(self) -> bytes:
        return self.secret.encode("utf-8")


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]
