# ollama_gateway/settings.py
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent
ROOT = PACKAGE_DIR.parent


def load_generation_defaults(path: Optional[Path]) -> Dict[str, Any]:
    """Read default generation options from YAML; missing file means no defaults."""
    if path is None or not Path(path).exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Generation defaults must be a mapping: {path}")
    return data


@dataclass(frozen=True)
class RelayConfig:
    """Per-process backend configuration handed to clients and the relay."""
    base_url: str
    default_model: str
    default_options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    connect_timeout: float = 10.0
    max_malformed_records: Optional[int] = None

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


class Settings(BaseSettings):
    # core
    APP_NAME: str = Field(default="Ollama Gateway")
    ENV: str = Field(default=os.getenv("APP_ENV", "dev"))
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3000)

    # backend
    OLLAMA_URL: str = Field(default="http://localhost:11434")
    DEFAULT_MODEL: str = Field(default="deepseek-coder")
    DEFAULTS_PATH: Optional[Path] = Field(default=PACKAGE_DIR / "generate" / "defaults.yaml")
    CONNECT_TIMEOUT: float = Field(default=10.0, gt=0)
    REQUEST_TIMEOUT: float = Field(default=60.0, gt=0)
    MAX_BACKEND_CONNECTIONS: int = Field(default=256, gt=0)

    # relay
    SINK_MAX_PENDING: int = Field(default=64, gt=0)
    MAX_MALFORMED_RECORDS: Optional[int] = Field(default=None, ge=0)

    # http surface
    STATIC_DIR: Path = Field(default=ROOT / "public")
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    def relay_config(self) -> RelayConfig:
        defaults = load_generation_defaults(self.DEFAULTS_PATH)
        return RelayConfig(
            base_url=self.OLLAMA_URL,
            default_model=self.DEFAULT_MODEL,
            default_options=MappingProxyType(defaults),
            connect_timeout=self.CONNECT_TIMEOUT,
            max_malformed_records=self.MAX_MALFORMED_RECORDS,
        )


settings = Settings()
