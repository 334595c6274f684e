from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./rental_escrow.db"
    LOG_LEVEL: str = "INFO"

    # Escrow protocol timings
    PAYMENT_REQUEST_WINDOW_SECONDS: int = 120
    PAYMENT_REQUEST_COOLDOWN_SECONDS: int = 120
    REQUIRED_REQUESTS_BEFORE_DECLINE: int = 2

    # Deducted from the escrow amount on release, in minor units (kobo)
    CLEANING_FEE: int = 0
    SERVICE_FEE: int = 0

    DEFAULT_CURRENCY: str = "NGN"
    # Check-in dates are calendar dates in the host's locale
    TIMEZONE: str = "Africa/Lagos"

    EXPIRY_SWEEP_ENABLED: bool = False
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = 15

    NOTIFIER: str = "database"  # database, logging

    # This configures how the settings are loaded
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

# Create a single instance to be used across the app
settings = Settings()
