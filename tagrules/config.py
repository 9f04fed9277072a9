from dataclasses import dataclass
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TAGRULES_", env_file=".env", extra="ignore")

    # Rules
    TAG_NAME: str = "validate"  # dataclass metadata / json_schema_extra key holding the rule expression
    MAX_DEPTH: int = 256

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()


@dataclass(frozen=True, slots=True)
class ValidatorConfig:
    """Per-validator configuration, fixed for the validator's lifetime."""
    tag_name: str = "validate"
    max_depth: int = 256

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ValidatorConfig":
        settings = settings or get_settings()
        return cls(tag_name=settings.TAG_NAME, max_depth=settings.MAX_DEPTH)
