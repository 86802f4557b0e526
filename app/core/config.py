"""
Application settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Dict, List, Optional


class Settings(BaseSettings):
    # App
    PROJECT_NAME: str = "AgriSupply"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    APP_NAME: str = "AGRISUPPLY"
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str

    # Security (tokens are issued by the identity provider)
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days

    # Uganda
    CURRENCY: str = "UGX"
    REGIONS: List[str] = ["Central", "Eastern", "Northern", "Western"]
    MTN_PREFIXES: List[str] = ["77", "78", "76"]
    AIRTEL_PREFIXES: List[str] = ["70", "75", "74"]

    # Delivery fees (UGX)
    SAME_REGION_DELIVERY_FEE: int = 5000
    DEFAULT_DELIVERY_FEE: int = 15000
    REGION_DELIVERY_FEES: Dict[str, int] = {
        "Central-Eastern": 10000,
        "Central-Northern": 15000,
        "Central-Western": 12000,
        "Eastern-Northern": 12000,
        "Eastern-Western": 15000,
        "Northern-Western": 18000,
    }

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Payment providers
    PAYMENT_HTTP_TIMEOUT: float = 30.0

    RELWORX_API_URL: str = "https://payments.relworx.com/api"
    RELWORX_API_KEY: str = ""
    RELWORX_ACCOUNT_NO: str = ""

    MTN_ENVIRONMENT: str = "sandbox"
    MTN_API_KEY: str = ""
    MTN_API_SECRET: str = ""
    MTN_SUBSCRIPTION_KEY: str = ""

    AIRTEL_ENVIRONMENT: str = "sandbox"
    AIRTEL_API_KEY: str = ""
    AIRTEL_API_SECRET: str = ""

    FLUTTERWAVE_API_URL: str = "https://api.flutterwave.com/v3"
    FLUTTERWAVE_SECRET_KEY: str = ""
    FLUTTERWAVE_WEBHOOK_HASH: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=True
    )

    @property
    def MTN_API_URL(self) -> str:
        if self.MTN_ENVIRONMENT == "production":
            return "https://proxy.momoapi.mtn.com"
        return "https://sandbox.momodeveloper.mtn.com"

    @property
    def AIRTEL_API_URL(self) -> str:
        if self.AIRTEL_ENVIRONMENT == "production":
            return "https://openapi.airtel.africa"
        return "https://openapiuat.airtel.africa"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
