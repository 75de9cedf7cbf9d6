from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # API Configuration
    APP_NAME: str = "Mailscan Phishing Detector"
    VERSION: str = "1.0.0"
    API_PREFIX: str = ""
    DEBUG: bool = False
    CORS_ORIGINS: List[str] = ["*"]

    # SQLite by default, any SQLAlchemy URL works
    DATABASE_URL: str = "sqlite:///./phishing.db"

    # Risk Scoring
    SENSITIVE_DOMAINS: List[str] = ["paypal.com"]
    HIGH_RISK_THRESHOLD: int = 60
    MEDIUM_RISK_THRESHOLD: int = 25
    EXCESSIVE_LINK_COUNT: int = 5

    # Privacy guard for the scan store
    BANNED_SCAN_FIELDS: List[str] = ["body", "subject", "recipient"]

    # Gmail DOM selectors
    SENDER_SELECTOR: str = "span.gD[email]"
    REPLY_TO_SELECTOR: str = "[data-reply-to]"
    BODY_SELECTOR: str = "div.a3s"
    OPEN_MARKER_SELECTOR: str = "h2.hP"

    # Remote scan sink
    SCAN_SINK_URL: Optional[str] = None
    SCAN_SINK_TIMEOUT: int = 10

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "plain"

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
