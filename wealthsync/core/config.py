from functools import lru_cache
from typing import Dict, List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from wealthsync.core.errors import ConfigurationError


class Settings(BaseSettings):
    # Environment mode: dev or prod
    ENV: Literal["dev", "prod"] = "dev"

    # Database
    DATABASE_URL: str = "sqlite:///./wealthsync.db"

    # Logging
    LOG_LEVEL: str = "INFO"
    SLACK_WEBHOOK_URL: str | None = None

    # HTTP
    CORS_ORIGINS: List[str] = ["*"]
    HTTP_TIMEOUT_SECONDS: float = 15.0
    PUBLIC_BASE_URL: str | None = None  # used to build webhook URLs handed to providers

    # Wallet-chain provider (Moralis)
    MORALIS_API_KEY: str | None = None
    MORALIS_WEBHOOK_SECRET: str | None = None
    WALLET_WEBHOOK_SCHEME: Literal["keccak256", "hmac-sha256"] = "keccak256"
    WALLET_STREAM_TAG: str = "wealthsync-global-stream"
    WALLET_CHAINS: List[str] = ["eth", "polygon", "bsc", "avalanche", "arbitrum", "optimism", "base"]
    WALLET_TOKEN_CHAIN: str = "eth"

    # Market-data provider (FMP)
    FMP_API_KEY: str | None = None
    FMP_BATCH_SIZE: int = 10  # free tier allows 10 symbols per quote request

    # Bank provider (Plaid)
    PLAID_CLIENT_ID: str | None = None
    PLAID_SECRET: str | None = None
    PLAID_ENV: Literal["sandbox", "development", "production"] = "sandbox"
    PLAID_WEBHOOK_SECRET: str | None = None
    BANK_WEBHOOK_SCHEME: Literal["keccak256", "hmac-sha256"] = "hmac-sha256"
    PLAID_CLIENT_NAME: str = "WealthSync"

    # Credential encryption (AES-256-GCM, exactly 32 characters)
    ENCRYPTION_KEY: str | None = None

    # Admissibility thresholds (None disables the check)
    WALLET_MIN_VALUE_USD: float | None = 5.0
    WALLET_NATIVE_MIN_VALUE_USD: float | None = 1.0
    WALLET_MAX_UNVERIFIED_VALUE_USD: float | None = 50_000.0
    MARKET_MIN_VALUE_USD: float | None = None
    MARKET_MAX_UNVERIFIED_VALUE_USD: float | None = None

    # Periodic price refresh
    PRICE_REFRESH_ENABLED: bool = False
    PRICE_REFRESH_INTERVAL_SECONDS: int = 60 * 60

    # Docs Configuration
    DOCS_ENABLED: bool | None = None  # Override docs setting (None = auto based on ENV)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # ignore unrelated keys in local .env
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENV == "prod"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENV == "dev"

    @property
    def debug_enabled(self) -> bool:
        """Debug mode is only enabled in development."""
        return self.is_development

    @property
    def effective_log_level(self) -> str:
        """Return appropriate log level based on environment."""
        if self.is_production:
            # In production, minimum INFO level (ignore DEBUG)
            return self.LOG_LEVEL if self.LOG_LEVEL.upper() != "DEBUG" else "INFO"
        return self.LOG_LEVEL

    @property
    def docs_enabled(self) -> bool:
        """Swagger/ReDoc docs enabled based on environment or override."""
        if self.DOCS_ENABLED is not None:
            return self.DOCS_ENABLED
        return self.is_development

    @property
    def plaid_base_url(self) -> str:
        return f"https://{self.PLAID_ENV}.plaid.com"

    def webhook_url(self, path: str) -> str:
        """Public URL a provider should call back on."""
        self.require("PUBLIC_BASE_URL")
        return f"{self.PUBLIC_BASE_URL.rstrip('/')}/{path.lstrip('/')}"

    def require(self, *names: str) -> None:
        """Fail fast when any of the named keys is missing or blank."""
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationError(f"{', '.join(missing)} not configured")

    def admissibility_thresholds(self) -> Dict[str, Dict[str, Optional[float]]]:
        """Per-provider (min, max-unverified) thresholds keyed by provider value."""
        return {
            "moralis": {
                "min_value_usd": self.WALLET_MIN_VALUE_USD,
                "native_min_value_usd": self.WALLET_NATIVE_MIN_VALUE_USD,
                "max_unverified_value_usd": self.WALLET_MAX_UNVERIFIED_VALUE_USD,
            },
            "fmp": {
                "min_value_usd": self.MARKET_MIN_VALUE_USD,
                "max_unverified_value_usd": self.MARKET_MAX_UNVERIFIED_VALUE_USD,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Build the process-wide settings once; components receive it explicitly."""
    return Settings()
