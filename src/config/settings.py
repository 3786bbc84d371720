# src/config/settings.py

"""Central configuration for the trustmart back-end."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the trustmart back-end."""

    # --- Providers ---
    SERPAPI_KEY: str = os.getenv("SERPAPI_KEY", "")
    SERPAPI_ENDPOINT: str = "https://serpapi.com/search.json"
    SERPAPI_ACCOUNT_ENDPOINT: str = "https://serpapi.com/account.json"
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")

    # --- Resilience ---
    REQUEST_DELAY: float = 1.0          # Seconds between provider retries
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 60.0
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    EVIDENCE_TIMEOUT: float = 25.0      # Per search / image lookup
    INFERENCE_TIMEOUT: float = 30.0
    EVIDENCE_CACHE_TTL: float = 900.0
    QUOTA_ERROR_MARKERS: list[str] = [
        "monthly searches",
        "run out of searches",
        "plan searches",
        "quota",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json,text/plain;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    }

    # --- Evidence ---
    LOCAL_CURRENCY: str = "INR"
    EXCHANGE_RATES: dict[str, float] = {
        "INR": 1.0,
        "USD": 80.0,
    }
    APPROXIMATE_RATE_CURRENCY: str = "USD"
    SEARCH_RESULTS_PER_QUERY: int = 5
    MAX_IMAGE_MATCHES: int = 10
    MARKETPLACE_DOMAIN: str = os.getenv(
        "TRUSTMART_DOMAIN", "trustmart.in"
    )
    REPUTABLE_DOMAINS: list[str] = [
        "amazon.in",
        "amazon.com",
        "flipkart.com",
        "croma.com",
        "reliancedigital.in",
        "tatacliq.com",
        "vijaysales.com",
        "myntra.com",
        "nykaa.com",
        "ajio.com",
        "snapdeal.com",
        "jiomart.com",
        "bestbuy.com",
        "walmart.com",
        "target.com",
        "ebay.com",
    ]
    STOCK_PHOTO_DOMAINS: list[str] = [
        "shutterstock.com",
        "gettyimages.com",
        "istockphoto.com",
        "alamy.com",
        "freepik.com",
        "dreamstime.com",
        "stock.adobe.com",
        "pexels.com",
        "unsplash.com",
    ]

    # --- Scoring ---
    CHECK_WEIGHT_POINTS: dict[str, int] = {
        "description": 10,
        "price": 25,
        "image": 30,
        "seller": 15,
        "brand": 20,
    }
    PRICE_TOLERANCE_LOW: float = 0.8
    PRICE_TOLERANCE_HIGH: float = 1.2
    PRICE_SLIGHTLY_OFF_MARGIN: float = 0.10
    TENTATIVE_UNKNOWN_THRESHOLD: int = 3
    FLAG_TRUST_THRESHOLD: int = 40

    # --- Ratings ---
    NEUTRAL_RATING_AVERAGE: float = 5.0
    MIN_RATING: int = 1
    MAX_RATING: int = 5

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    DB_PATH: Path = DATA_DIR / "trustmart.db"
    REPORTS_DIR: Path = BASE_DIR / "reports"
    LOGS_DIR: Path = BASE_DIR / "logs"

    @classmethod
    def check_weights(cls) -> dict[str, float]:
        """Return the check weights as fractions of one."""
        return {
            name: points / 100
            for name, points in cls.CHECK_WEIGHT_POINTS.items()
        }
