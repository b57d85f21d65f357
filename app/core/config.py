from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Tablesure API"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "changeme"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "12345"
    POSTGRES_DB: str = "tablesure_db"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: str = ""
    CREATE_DATABASE_ON_STARTUP: bool = True

    # Booking rules
    RESTAURANT_TIMEZONE: str = "Asia/Kolkata"
    ARRIVAL_WINDOW_MINUTES: int = 15
    WALK_IN_WINDOW_MINUTES: int = 120
    SLOT_INTERVAL_MINUTES: int = 30

    # Availability search
    NEXT_AVAILABLE_MAX_RESULTS: int = 10
    NEXT_AVAILABLE_MAX_DAYS: int = 7

    # Expiry sweeper
    SWEEPER_ENABLED: bool = True
    SWEEPER_INTERVAL_SECONDS: float = 60.0
    SWEEPER_BATCH_SIZE: int = 200

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def assemble_db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

settings = Settings()
settings.DATABASE_URL = settings.assemble_db_url()
