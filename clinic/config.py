# clinic/config.py - Configuration management
from dotenv import load_dotenv

load_dotenv()
from typing import Optional, Union
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Application settings with validation and environment variable support (Pydantic V2 Syntax)"""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Application
    app_name: str = "Clinic Practice Manager"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # Clinic identity (presentation only; the data layer never reads these)
    clinic_name: str = Field(default="Shree Samarth Krupa Clinic", alias="CLINIC_NAME")
    doctor_name: str = Field(default="Dr. Rupali Nilesh Kene", alias="DOCTOR_NAME")
    doctor_degree: str = Field(default="BHMS", alias="DOCTOR_DEGREE")
    currency_symbol: str = Field(default="₹", alias="CURRENCY_SYMBOL")

    # Remote backend. Unset means the local key/value variant is used.
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    # Local key/value store
    local_store_path: str = Field(default="./data", alias="LOCAL_STORE_PATH")
    local_store_url: Optional[str] = Field(default=None, alias="LOCAL_STORE_URL")

    # PIN session
    secret_key: Optional[str] = Field(default=None, alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="ALGORITHM")
    session_expire_minutes: int = Field(default=720, alias="SESSION_EXPIRE_MINUTES")
    clinic_pin: str = Field(default="1234", alias="CLINIC_PIN")

    # Generative text service
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")
    ai_timeout_seconds: float = Field(default=20.0, alias="AI_TIMEOUT_SECONDS")

    # CORS
    cors_origins: Union[str, list[str]] = Field(default=["http://localhost:3000", "http://localhost:5173"], alias="CORS_ORIGINS")

    # --- Pydantic V2 Validators ---
    @field_validator("cors_origins", mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            if not v.strip():
                return ["http://localhost:3000", "http://localhost:5173"]
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        if v is None or not v.strip():
            return None
        if not v.startswith(("postgresql://", "postgresql+psycopg2://", "sqlite:///")):
            raise ValueError("DATABASE_URL must be a valid PostgreSQL or SQLite URL")
        return v

    @field_validator("local_store_url")
    @classmethod
    def validate_local_store_url(cls, v):
        if v is None or not v.strip():
            return None
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("LOCAL_STORE_URL must be a Redis URL")
        return v

    @field_validator("secret_key")
    @classmethod
    def validate_key_length(cls, v):
        if v is not None and len(v) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("clinic_pin")
    @classmethod
    def validate_pin(cls, v):
        if len(v) < 4 or not v.isdigit():
            raise ValueError("CLINIC_PIN must be at least 4 digits")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def uses_remote_backend(self) -> bool:
        return bool(self.database_url)

    @property
    def ai_enabled(self) -> bool:
        return bool(self.gemini_api_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

# Environment-specific configurations
class DevelopmentConfig(Settings):
    """Development environment configuration"""
    debug: bool = True
    environment: str = "development"

class ProductionConfig(Settings):
    """Production environment configuration"""
    debug: bool = False
    environment: str = "production"
    log_json: bool = True

class TestingConfig(Settings):
    """Testing environment configuration"""
    debug: bool = True
    environment: str = "testing"
    database_url: Optional[str] = None

def get_config_by_env(env: str) -> Settings:
    """Get configuration by environment name"""
    configs = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig
    }

    config_class = configs.get(env.lower(), Settings)
    return config_class()
