from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./tournaments.db"
    STORAGE_BACKEND: str = "sql" # "sql" or "memory"

    SECRET_KEY: str = "YOUR_SECRET_KEY_HERE"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Used when a tournament is created without an explicit minimum
    DEFAULT_MIN_PARTICIPANTS: int = 4

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
