"""Application configuration."""

from os import getenv

from pydantic import BaseModel


def _weekdays_from_env(value: str) -> tuple[int, ...]:
    return tuple(int(part) for part in value.split(",") if part.strip())


class Settings(BaseModel):
    """Runtime settings for the application."""

    app_name: str = "Ordering Portal API"
    app_env: str = getenv("APP_ENV", "dev")
    log_level: str = getenv("LOG_LEVEL", "INFO")
    database_url: str = getenv("DATABASE_URL", "sqlite:///./ordering_portal.db")
    jwt_secret_key: str = getenv("JWT_SECRET_KEY", "dev-only-change-me-to-a-long-random-secret")
    jwt_algorithm: str = getenv("JWT_ALGORITHM", "HS256")
    jwt_expire_minutes: int = int(getenv("JWT_EXPIRE_MINUTES", "60"))
    admin_username: str = getenv("ADMIN_USER", "admin")
    admin_email: str = getenv("ADMIN_EMAIL", "admin@portal.local")
    admin_password: str = getenv("ADMIN_PASS", "admin123")
    app_timezone: str = getenv("APP_TIMEZONE", "America/Bogota")
    default_order_time_limit: str = getenv("DEFAULT_ORDER_TIME_LIMIT", "18:00")
    order_tax_rate: str = getenv("ORDER_TAX_RATE", "0.19")
    scheduler_enabled: bool = getenv("ORDER_SCHEDULER_ENABLED", "1") == "1"
    scheduler_offset_minutes: int = int(getenv("ORDER_SCHEDULER_OFFSET_MINUTES", "5"))
    scheduler_weekdays: tuple[int, ...] = _weekdays_from_env(getenv("ORDER_SCHEDULER_WEEKDAYS", "0,1,2,3,4"))
    scheduler_poll_seconds: int = int(getenv("ORDER_SCHEDULER_POLL_SECONDS", "30"))

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() in {"dev", "development"}


settings: Settings = Settings()
