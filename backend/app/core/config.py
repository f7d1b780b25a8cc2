from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "BTW Assist"
    DEBUG: bool = False
    ENV: str = "production"

    # Server
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://btw_user:change_me@db:5432/btw_assist"
    DATABASE_URL_SYNC: str = "postgresql://btw_user:change_me@db:5432/btw_assist"

    # Security
    SECRET_KEY: str = "change-me-in-production-use-openssl-rand-hex-32"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    # Uploads / imports
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    IMPORT_BATCH_SIZE: int = 50
    MAX_SAVED_MAPPINGS: int = 10

    # Invoice OCR (Tesseract language packs)
    OCR_LANGUAGES: str = "nld+eng"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS string into a list of origins."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
