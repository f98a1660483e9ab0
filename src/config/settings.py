from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Resource Hub"
    DEBUG: bool = False

    # Paths
    SQLITE_DB_PATH: str = "data/resource_hub.db"

    # Secrets
    SECRET_KEY: str  # For session signing
    SETUP_KEY: str | None = None  # Guards the one-time bootstrap endpoint

    # Auth
    SESSION_MAX_AGE: int = 3600 * 24 * 30  # 30 days
    BCRYPT_ROUNDS: int = 12
    INITIAL_ADMIN_EMAIL: str = "admin@example.com"
    INITIAL_ADMIN_PASSWORD: str | None = None
    INITIAL_ADMIN_NAME: str = "Admin"

    # Invitations & audit
    INVITE_TOKEN_LENGTH: int = 32
    ACCESS_LOG_LIMIT: int = 1000

    # Observability
    LOG_LEVEL: str = "INFO"
    SEQ_URL: str | None = None
    SEQ_API_KEY: str | None = None

    model_config = SettingsConfigDict(env_file="secrets/.env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
