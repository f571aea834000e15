"""Configuration management for KitBot."""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Application configuration."""

    # OpenAI Configuration
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TEMPERATURE: float = float(os.getenv("OPENAI_TEMPERATURE", "0.7"))
    OPENAI_MAX_TOKENS: int = int(os.getenv("OPENAI_MAX_TOKENS", "500"))
    # Retries off: a timed-out completion goes straight to the fallback reply.
    OPENAI_TIMEOUT_SECONDS: float = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "30"))
    OPENAI_MAX_RETRIES: int = int(os.getenv("OPENAI_MAX_RETRIES", "0"))

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./kitbot.db")

    # Conversation
    HISTORY_WINDOW: int = int(os.getenv("HISTORY_WINDOW", "10"))

    # Admission control (per-sender cool-down and single-flight)
    SENDER_COOLDOWN_SECONDS: float = float(os.getenv("SENDER_COOLDOWN_SECONDS", "3"))
    SENDER_GATE_MAX_ENTRIES: int = int(os.getenv("SENDER_GATE_MAX_ENTRIES", "1000"))

    # Media
    TOUR_VIDEO_FALLBACK_PATH: str = os.getenv("TOUR_VIDEO_FALLBACK_PATH", "media/tour_video.mp4")

    # Google Calendar
    # GOOGLE_CREDENTIALS_JSON holds a service-account JSON document (production);
    # GOOGLE_CREDENTIALS_FILE points to the same document on disk (development).
    GOOGLE_CREDENTIALS_JSON: str = os.getenv("GOOGLE_CREDENTIALS_JSON", "")
    GOOGLE_CREDENTIALS_FILE: str = os.getenv("GOOGLE_CREDENTIALS_FILE", "google_credentials.json")
    GOOGLE_CALENDAR_ID: str = os.getenv("GOOGLE_CALENDAR_ID", "primary")
    CALENDAR_TIMEZONE: str = os.getenv("CALENDAR_TIMEZONE", "America/Sao_Paulo")
    VISIT_DURATION_MINUTES: int = int(os.getenv("VISIT_DURATION_MINUTES", "30"))

    # Lead follow-up job (Celery beat, Redis broker)
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    WHATSAPP_GATEWAY_URL: str = os.getenv("WHATSAPP_GATEWAY_URL", "")  # WhatsApp transport, e.g. http://localhost:3001
    WHATSAPP_GATEWAY_API_KEY: str = os.getenv("WHATSAPP_GATEWAY_API_KEY", "")
    FOLLOWUP_MIN_AGE_HOURS: int = int(os.getenv("FOLLOWUP_MIN_AGE_HOURS", "24"))
    FOLLOWUP_MAX_AGE_HOURS: int = int(os.getenv("FOLLOWUP_MAX_AGE_HOURS", "72"))
    FOLLOWUP_BATCH_SIZE: int = int(os.getenv("FOLLOWUP_BATCH_SIZE", "3"))
    FOLLOWUP_MIN_DELAY_SECONDS: float = float(os.getenv("FOLLOWUP_MIN_DELAY_SECONDS", "15"))
    FOLLOWUP_MAX_DELAY_SECONDS: float = float(os.getenv("FOLLOWUP_MAX_DELAY_SECONDS", "40"))

    # Application Settings
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Security
    API_KEY: str = os.getenv("API_KEY", "")  # For API authentication

    @classmethod
    def has_openai_key(cls) -> bool:
        """Check if OpenAI API key is configured."""
        return bool(cls.OPENAI_API_KEY)

    @classmethod
    def has_calendar_credentials(cls) -> bool:
        """Check if some source of Google credentials is configured."""
        return bool(cls.GOOGLE_CREDENTIALS_JSON) or os.path.exists(cls.GOOGLE_CREDENTIALS_FILE)

    @classmethod
    def has_whatsapp_gateway(cls) -> bool:
        """Check if the WhatsApp transport URL is configured (needed for follow-ups)."""
        return bool(cls.WHATSAPP_GATEWAY_URL)


# Create a global config instance
config = Config()
