"""Application configuration"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./pricetracker.db"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 30

    # Civil calendar used for "today" in discount period checks
    TIMEZONE: str = "Asia/Seoul"

    # Legacy discount_price above this share of selling_price is a final price, not an amount
    DISCOUNTED_PRICE_RATIO: float = 0.3

    # Registration policy
    DUPLICATE_WINDOW_HOURS: int = 24
    LOCATION_WARNING_KM: float = 1.0
    POINTS_PER_REGISTRATION: int = 5
    IMAGE_MIN_CONFIDENCE: int = 50

    # ~5MB image once base64 encoded
    MAX_IMAGE_BASE64_BYTES: int = 7 * 1024 * 1024

    # Vision gateway (OpenAI-compatible chat completions)
    VISION_API_URL: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    VISION_API_KEY: Optional[str] = None
    VISION_MODEL: str = "google/gemini-2.5-flash"
    VISION_TIMEOUT_SECONDS: float = 30.0

    # Local Tesseract fallback
    OCR_LANGUAGES: str = "kor+eng"

    class Config:
        env_file = ".env"


settings = Settings()
