# stash_auth/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore")

    APP_NAME: str = "stash-auth"
    LOG_LEVEL: str = "INFO"
    ORIGINS: list[str] = ["http://localhost:3000"]

    JWT_SECRET: str = Field(...)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # full URL wins over the DB_* parts (tests use sqlite+aiosqlite)
    DATABASE_URL: str | None = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_NAME: str = ""

    PLAID_CLIENT_ID: str
    PLAID_SECRET_KEY: str
    PLAID_BASE_URL: str = "https://sandbox.plaid.com"
    PLAID_IDENTITY_TEMPLATE: str = ""
    PLAID_REDIRECT_URL: str = ""

    # delivery providers; an unset channel is skipped with a warning
    SENDGRID_URL: str = "https://api.sendgrid.com/v3/mail/send"
    SENDGRID_API_KEY: str | None = None
    SENDGRID_FROM_EMAIL: str | None = None
    SIMPU_URL: str | None = None
    SIMPU_KEY: str | None = None

    CODE_TTL_MINUTES: int = 15
    TOTP_VALID_WINDOW: int = 1
    EMAIL_MFA_ENFORCE_EXPIRY: bool = True

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4")


settings = Settings()  # type: ignore[call-arg]
