from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central settings object.
    Production provides env vars; locally you can use backend/.env.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # API keys
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"
    SEARCHAPI_API_KEY: str = ""
    BARCODE_LOOKUP_API_KEY: str = ""
    ORS_API_KEY: str = ""

    # Shopping search locale (fixed per deployment, never taken from the request)
    SEARCH_LOCATION: str = "Winnipeg, Manitoba, Canada"
    SEARCH_GOOGLE_DOMAIN: str = "google.ca"
    SEARCH_GL: str = "ca"
    SEARCH_HL: str = "en"
    SEARCH_RESULT_LIMIT: int = 20

    # Sellers outside this list are dropped from search results
    RETAILER_ALLOW_LIST: List[str] = [
        "walmart",
        "safeway",
        "save on foods",
        "costco",
        "superstore",
        "shoppers drug mart",
        "pharmasave",
        "pharmacy",
        "sobeys",
        "no frills",
    ]

    # Distance estimation
    ROUTING_COUNTRY: str = "CA"
    NOMINATIM_USER_AGENT: str = "nearbuy/0.1 (shopping assistant)"

    # Pipeline defaults: "barcode" | "description", "routing" | "geodesic"
    IDENTIFICATION_MODE: str = "description"
    DISTANCE_STRATEGY: str = "routing"

    # Applied to every outbound call
    HTTP_TIMEOUT_SECONDS: float = 10.0

    LOG_LEVEL: str = "INFO"

    # Versioning
    APP_VERSION: str = "0.1.0"
    BUILD_ID: str = "dev"


# other modules import this
settings = Settings()
