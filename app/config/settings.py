from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "development"
    NAME: str = "Training Center Enrollment Server"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"
    """Pydantic v2 doesn't support parsing List[str] from a plain comma-separated string by default anymore."""
    ALLOWED_HOSTS: Union[str, List[str]] = "http://localhost:3000"
    LOG_LEVEL: str = "info"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./enrollment.db"
    DATABASE_ECHO: bool = False

    # Enrollment engine
    ENROLLMENT_OVERRIDE_MAX_RATIO: float = 0.20
    ENROLLMENT_LOCK_TIMEOUT_SECONDS: float = 10.0
    ENROLLMENT_IMPORT_MAX_ROWS: int = 500
    STUDENT_CODE_PREFIX: str = "ST"
    TIMEZONE: str = "Asia/Ho_Chi_Minh"

    @field_validator("ALLOWED_HOSTS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if not v:
            return []
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        return v

    @field_validator("ENROLLMENT_OVERRIDE_MAX_RATIO")
    def validate_override_ratio(cls, v: float) -> float:
        if v < 0:
            raise ValueError("ENROLLMENT_OVERRIDE_MAX_RATIO must not be negative")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
