from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Clinica"
    API_V1_STR: str = "/api/v1"
    CLINIC_NAME: str = "QUIROPRAXIA RAMALLO"

    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "clinica"
    DATABASE_URL: Optional[str] = None

    # Hosted auth provider
    SUPABASE_URL: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SUPABASE_JWT_SECRET: str = "change-me-to-the-project-jwt-secret-0123456789"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"
    SESSION_EXPIRE_SECONDS: int = 3600

    ENVIRONMENT: str = "production"
    LOG_LEVEL: Optional[str] = None

    REDIS_URL: str = "redis://localhost:6379/0"

    TIMEZONE: str = "America/Argentina/Buenos_Aires"
    COUNTRY_CODE: str = "+54"
    OPENING_TIME: str = "09:00"
    CLOSING_TIME: str = "20:00"
    SLOT_MINUTES: int = 5

    IMPORT_BATCH_SIZE: int = 50
    IMPORT_BATCH_PAUSE_SECONDS: float = 0.5
    PROBE_TIMEOUT_SECONDS: float = 10.0

    class Config:
        case_sensitive = True
        env_file = ".env"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"

settings = Settings()
