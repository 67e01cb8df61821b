# gateway/api/settings.py
import os
import json
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config", "server.json")

_TRUE = {"1", "true", "yes", "on"}


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE


def _as_list(value) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [part.strip() for part in str(value).split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    port: int = 5000
    host: str = "0.0.0.0"
    # Default is to trust proxy headers only from the loopback interface
    trust_proxy: str = "127.0.0.1"
    secret_key: str = "changeme-local-dev"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    database_url: str = "sqlite+aiosqlite:///./gateway.db"
    seed_database: bool = False
    broadcast_url: str = "memory://"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    debug: bool = False


def load_settings(config_path: str = CONFIG_PATH) -> Settings:
    """
    Read defaults from the JSON config file, then let environment
    variables of the same (upper-case) name override them.
    """
    config_data = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            config_data = json.load(f)

    def pick(name, default):
        return os.getenv(name, config_data.get(name, default))

    return Settings(
        port=int(pick("PORT", 5000)),
        host=str(pick("HOST", "0.0.0.0")),
        trust_proxy=str(pick("TRUST_PROXY", "127.0.0.1")),
        secret_key=str(pick("SECRET_KEY", "changeme-local-dev")),
        algorithm=str(pick("ALGORITHM", "HS256")),
        access_token_expire_minutes=int(pick("ACCESS_TOKEN_EXPIRE_MINUTES", 30)),
        database_url=str(pick("DATABASE_URL", "sqlite+aiosqlite:///./gateway.db")),
        seed_database=_as_bool(pick("SEED_DATABASE", False)),
        broadcast_url=str(pick("BROADCAST_URL", "memory://")),
        cors_origins=_as_list(pick("CORS_ORIGINS", "*")),
        debug=_as_bool(pick("DEBUG", False)),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
