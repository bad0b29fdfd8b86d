from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str = "change-me"
    DB_URL: str = "sqlite:///./zora.db"
    JWT_ISS: str = "zora"
    JWT_EXP_MIN: int = 12*60
    TZ: str = "UTC"
    CURRENCY: str = "COP"
    LOG_LEVEL: str = "INFO"

    # first-run seed
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "admin123"
    DEFAULT_WAREHOUSE: str = "Principal"
    AUTO_OPEN_CASH_SESSION: bool = True

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
