from functools import lru_cache
from pathlib import Path
from typing import List
from urllib.parse import urlparse
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(ENV_FILE), case_sensitive=False)

    APP_NAME: str = "Visit Gate Backend"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = ""
    API_V1_PREFIX: str = "/api/v1"
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8000

    DATABASE_URL: str = "sqlite:///./visitgate.db"
    # Applies to pool checkout and, on SQLite, to the lock wait.
    STORE_TIMEOUT_SECONDS: float = 5.0

    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    SOCKET_PATH: str = "/socket.io"
    DASHBOARD_NAMESPACE: str = "/realtime/dashboard"

    FACILITY_NAME: str = "Bureau of Corrections"
    QR_VERSION: str = "1.0"

    # Entry window around the scheduled slot:
    # [start - early grace, start + duration + late grace], both ends inclusive.
    QR_EARLY_GRACE_MINUTES: int = 30
    QR_LATE_GRACE_MINUTES: int = 30
    VISIT_DURATION_MINUTES: int = 0
    # Codes whose visitId has no backing record are judged on their own timestamps.
    LEGACY_QR_ENABLED: bool = True

    @property
    def cors_origins(self) -> List[str]:
        origins: list[str] = []
        for raw in self.CORS_ORIGINS.split(","):
            value = raw.strip()
            if not value:
                continue
            parsed = urlparse(value)
            if parsed.scheme and parsed.netloc:
                value = f"{parsed.scheme}://{parsed.netloc}"
            origins.append(value.rstrip("/"))
        return origins

    @property
    def log_level(self) -> str:
        if self.LOG_LEVEL.strip():
            return self.LOG_LEVEL.strip().upper()
        return "DEBUG" if self.DEBUG else "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
