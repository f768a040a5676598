from __future__ import annotations
from dataclasses import dataclass
import os
from dotenv import load_dotenv

load_dotenv()

# Now, we define the Settings class.
# We use @dataclass(frozen=True) to make this immutable.
# Once settings are loaded, they should not change during runtime.
@dataclass(frozen=True)
class Settings:
    # Now, we fetch the Database URL.
    # The default points at a local PostgreSQL; tests pass an in-memory SQLite URL.
    database_url: str = os.getenv(
        "DATABASE_URL",
        "postgresql+psycopg://datalens:datalenspass@db:5432/datalens"
    )

    # Provider credentials. A missing FRED key switches the FRED connector to synthetic data.
    alpha_vantage_api_key: str = os.getenv("ALPHA_VANTAGE_API_KEY", "demo")
    fred_api_key: str | None = os.getenv("FRED_API_KEY") or None

    # Upstream providers are unreliable, so every request gets a bounded timeout.
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
    widget_timeout_seconds: float = float(os.getenv("WIDGET_TIMEOUT_SECONDS", "30"))

    # api.weather.gov rejects requests without a declared User-Agent.
    noaa_user_agent: str = os.getenv("NOAA_USER_AGENT", "(datalens.app, contact@datalens.app)")
    undata_max_pages: int = int(os.getenv("UNDATA_MAX_PAGES", "50"))

    # The identity provider sits in front of us and forwards the caller id in this header.
    user_id_header: str = os.getenv("USER_ID_HEADER", "X-User-Id")

    # Now, we parse the CORS origins.
    # The env var is a comma-separated string ("http://localhost:3000,https://app.example").
    cors_origins: tuple[str, ...] = tuple(
        s.strip()
        for s in os.getenv("CORS_ORIGINS", "*").split(",")
        if s.strip()
    )

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
