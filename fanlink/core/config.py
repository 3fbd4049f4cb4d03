from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv(override=True)

class Settings(BaseSettings):
    PROJECT_NAME: str = "FanLink"
    # Application settings
    PORT: int = 8000
    HOST: str = "127.0.0.1"
    VERSION: str = "0.1.0"
    CORS_ORIGINS: str = "*"

    # SQLAlchemy database URL
    DATABASE_URL: str = "sqlite:///./fanlink.db"

    # Login configuration (tokens are issued by the account service)
    ENCODE_KEY: str | None = None
    ENCODE_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = 1800 # 30 minutes

    # Wallet challenge settings
    CHALLENGE_TTL_SECONDS: int = 300 # 5 minutes
    CHALLENGE_APP_NAME: str = "FanLink"

    # Redis settings, challenges are kept in process memory when REDIS_HOST is empty
    REDIS_HOST: str | None = None
    REDIS_PORT: int = 6379
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_SSL: bool = False

    # Debug settings
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

# Instantiate the settings
settings = Settings()
