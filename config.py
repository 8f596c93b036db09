from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql://postgres:postgres@db:5432/booklog"
    CREATE_TABLES: bool = True
    LOG_LEVEL: str = "INFO"

    # External auth collaborator; the local token resolver is used when unset
    AUTH_SERVICE_URL: Optional[str] = None
    SECRET_KEY: str = "change_this_secret"
    ALGORITHM: str = "HS256"
    SESSION_COOKIE_NAME: str = "session_token"

    WEB_URL: str = "http://localhost:5173"
    FRONTEND_ORIGINS: str = "http://localhost:5173,http://localhost:8080"

    # Client side
    API_URL: str = "http://localhost:8000"
    API_TOKEN: Optional[str] = None
    API_TIMEOUT: float = 10.0

    @property
    def allow_origins(self) -> List[str]:
        return [origin.strip() for origin in self.FRONTEND_ORIGINS.split(",") if origin.strip()]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
