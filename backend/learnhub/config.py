from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "LearnHub"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENV: str = "dev"  # Environment: "dev", "staging", "prod"

    # Database (MongoDB)
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "learnhub"

    # Security
    # Access and refresh tokens are signed with different secrets so that one
    # kind can never be accepted in place of the other.
    ACCESS_TOKEN_SECRET: str = "access-secret-change-in-production"
    REFRESH_TOKEN_SECRET: str = "refresh-secret-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Payment provider (hosted checkout)
    PAYMENT_API_URL: str = "https://api.stripe.com/v1"
    PAYMENT_SECRET_KEY: str = ""
    PAYMENT_WEBHOOK_SECRET: str = ""
    PAYMENT_WEBHOOK_TOLERANCE_SECONDS: int = 300
    PAYMENT_CURRENCY: str = "usd"
    PAYMENT_HTTP_TIMEOUT: float = 15.0
    PAYMENT_MAX_RETRIES: int = 3

    # Frontends
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:3001"]
    FRONTEND_BASE_URL: str = "http://localhost:3000"

    # Uploads
    DATA_DIR: str = "../data"
    UPLOAD_MAX_SIZE_MB: int = 5

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
