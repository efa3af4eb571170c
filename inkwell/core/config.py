from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    PROJECT_NAME: str = "Inkwell"
    API_PREFIX: str = "/api"
    ENVIRONMENT: str = "development"  # "development", "test" or "production"

    # Database (PostgreSQL in production, SQLite file for local dev)
    DATABASE_URL: str = "sqlite:///./inkwell.db"

    # Auth
    SECRET_KEY: str = ""  # Must be set via environment variable
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days (matches cookie expiry)
    MIN_PASSWORD_LENGTH: int = 6

    # Frontend URL for CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # Cookie security (False for local dev without HTTPS)
    COOKIE_SECURE: bool = True

    # Error tracking
    SENTRY_DSN: str = ""

    # Listing
    DEFAULT_PAGE_LIMIT: int = 10
    MAX_PAGE_LIMIT: int = 100

    # Posts
    WORDS_PER_MINUTE: int = 200
    SLUG_MAX_ATTEMPTS: int = 5  # persist retries after a unique-index collision on slug
    DEFAULT_POST_IMAGE: str = (
        "https://images.pexels.com/photos/261763/pexels-photo-261763.jpeg?auto=compress&cs=tinysrgb&w=800"
    )

    # Comments
    MAX_THREAD_DEPTH: int = 5

    # Users
    DEFAULT_AVATAR: str = (
        "https://images.pexels.com/photos/1391498/pexels-photo-1391498.jpeg?auto=compress&cs=tinysrgb&w=100"
    )

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
