from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # frozen: loaded once at startup, values are handed to services by injection
    model_config = SettingsConfigDict(env_file=".env", frozen=True, extra="ignore")

    ENV: str = "development"

    DATABASE_URL: str = "sqlite:///./app.db"
    SECRET_KEY: str
    ALGORITHM: str = "HS512"
    JWT_ISSUER: str = "irrigation-auth"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    TOKEN_LEEWAY_SECONDS: int = 1
    PHONE_DEFAULT_REGION: str = "CN"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    RATE_LIMIT_ENABLED: bool = True


settings = Settings()
