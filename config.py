from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    NODE_ENV: str = "development"
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_HOST: str
    POSTGRES_DATABASE: str
    POSTGRES_PORT: str = "5432"  # Default port for PostgreSQL

    # Bearer token configuration
    JWT_SECRET: str = "your-jwt-secret-here"
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "vocal-studio-api"
    SESSION_EXPIRE_HOURS: int = 24

    # CORS configuration - comma-separated list of allowed origins
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:3001,http://localhost:3007"

    # All service routers are mounted under this prefix
    API_PREFIX: str = "/api"

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Month boundaries for admin reports are computed in this timezone
    STUDIO_TIMEZONE: str = "Asia/Seoul"

    NOTIFICATION_PAGE_SIZE: int = 50

    # Construct the full URL dynamically
    @property
    def POSTGRES_URL(self):
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"
        )

    model_config = SettingsConfigDict(
        env_file=".env.development", extra="ignore")


settings = Settings()
