import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

DEFAULT_ORIGINS = ["http://localhost:3000"]


@dataclass(frozen=True)
class Settings:
    cohere_api_key: str
    port: int = 3001
    environment: str = "development"
    allowed_origins: list[str] = field(default_factory=lambda: list(DEFAULT_ORIGINS))
    log_level: str = "INFO"
    request_timeout_ms: int = 30000
    max_body_bytes: int = 10 * 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        api_key = os.getenv("COHERE_API_KEY", "")
        if not api_key:
            raise ValueError("COHERE_API_KEY is missing from environment variables")

        origins = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]
        return cls(
            cohere_api_key=api_key,
            port=int(os.getenv("PORT", "3001")),
            environment=os.getenv("APP_ENV", "development"),
            allowed_origins=origins or list(DEFAULT_ORIGINS),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            request_timeout_ms=int(os.getenv("RELAY_TIMEOUT_MS", "30000")),
            max_body_bytes=int(os.getenv("MAX_BODY_BYTES", str(10 * 1024 * 1024))),
        )
