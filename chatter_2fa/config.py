from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Chatter 2FA"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str

    # Security settings
    secret_key: str
    access_token_expire_minutes: int = 30

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    # TOTP settings
    totp_issuer: str = "Chatter"
    totp_digits: int = 6
    totp_period: int = 30
    totp_window: int = 1
    totp_secret_bytes: int = 20

    # Backup codes
    backup_code_count: int = 8

    # Conditional writes retried before giving up with a persistence error
    max_write_attempts: int = 3

    # Pre-session endpoints (validate, check) are throttled per client address
    validate_rate_limit: str = "10/minute"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
