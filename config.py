import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

MEMORY_BACKENDS = ("file", "memory")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Process-wide configuration, built once at startup and passed around."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.deepseek.com/v1",
        model: str = "deepseek-chat",
        request_timeout: float = 20.0,
        temperature: float = 0.7,
        top_p: float = 0.9,
        max_tokens: int = 1000,
        frequency_penalty: float = 0.5,
        presence_penalty: float = 0.3,
        history_limit: int = 20,
        memory_dir: str = "memories",
        memory_backend: str = "file",
        host: str = "0.0.0.0",
        port: int = 3000,
        app_env: str = "development",
        deployed_on: str = "local",
        serialize_per_user: bool = True,
        log_level: str = "INFO",
    ):
        if history_limit < 1:
            raise ValueError(f"history_limit must be positive, got {history_limit}")
        if request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {request_timeout}")
        if memory_backend not in MEMORY_BACKENDS:
            raise ValueError(f"memory_backend must be one of {MEMORY_BACKENDS}, got {memory_backend!r}")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.request_timeout = request_timeout
        self.temperature = temperature
        self.top_p = top_p
        self.max_tokens = max_tokens
        self.frequency_penalty = frequency_penalty
        self.presence_penalty = presence_penalty
        self.history_limit = history_limit
        self.memory_dir = memory_dir
        self.memory_backend = memory_backend
        self.host = host
        self.port = port
        self.app_env = app_env
        self.deployed_on = deployed_on
        self.serialize_per_user = serialize_per_user
        self.log_level = log_level.upper()

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the environment (and .env)."""
        return cls(
            api_key=os.getenv("DEEPSEEK_API_KEY") or None,
            base_url=os.getenv("DEEPSEEK_BASE_URL", "https://api.deepseek.com/v1"),
            model=os.getenv("DEEPSEEK_MODEL", "deepseek-chat"),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "20")),
            temperature=float(os.getenv("MODEL_TEMPERATURE", "0.7")),
            top_p=float(os.getenv("MODEL_TOP_P", "0.9")),
            max_tokens=int(os.getenv("MODEL_MAX_TOKENS", "1000")),
            frequency_penalty=float(os.getenv("MODEL_FREQUENCY_PENALTY", "0.5")),
            presence_penalty=float(os.getenv("MODEL_PRESENCE_PENALTY", "0.3")),
            history_limit=int(os.getenv("HISTORY_LIMIT", "20")),
            memory_dir=os.getenv("MEMORY_DIR", "memories"),
            memory_backend=os.getenv("MEMORY_BACKEND", "file").strip().lower(),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            app_env=os.getenv("APP_ENV") or os.getenv("NODE_ENV", "development"),
            deployed_on=os.getenv("DEPLOYED_ON", "local"),
            serialize_per_user=_env_bool("SERIALIZE_PER_USER", True),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @property
    def start_listener(self) -> bool:
        """Managed deployments import the ASGI app instead of running uvicorn."""
        return self.app_env.lower() != "production"

    def generation_params(self) -> dict:
        return {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_tokens": self.max_tokens,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
