from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./storefront.db"

    # JWT verification (tokens are issued by the auth service)
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    # Session (guest cart cookie)
    SESSION_SECRET_KEY: str = "change-me-too"
    CART_SESSION_COOKIE: str = "cart_session"
    CART_SESSION_MAX_AGE: int = 60 * 60 * 24 * 30

    # Shop Configuration
    SHOP_NAME: str = "Little Sprout"
    CURRENCY: str = "USD"

    # Pricing
    DEFAULT_TAX_RATE: Decimal = Decimal("0.08")
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("75")
    FLAT_SHIPPING_FEE: Decimal = Decimal("5.99")
    BUNDLE_DISCOUNT_PERCENT: Decimal = Decimal("10")
    MAX_CART_QUANTITY: int = 99
    REFUND_WINDOW_DAYS: int = 30

    # AI size prediction (optional, fallback heuristic is used when unset)
    OPENAI_API_KEY: str = ""
    OPENAI_API_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o-mini"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
