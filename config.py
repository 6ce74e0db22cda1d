"""
Configuration management for the ERP Demo WhatsApp assistant.

Loads environment variables from .env file and provides typed access to configuration.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)

logger = logging.getLogger(__name__)


class Config:
    """Configuration class for the assistant."""

    # WhatsApp Cloud API Configuration
    WHATSAPP_VERIFY_TOKEN = os.getenv("WHATSAPP_VERIFY_TOKEN", "")
    WHATSAPP_APP_SECRET = os.getenv("WHATSAPP_APP_SECRET", "")
    WHATSAPP_ACCESS_TOKEN = os.getenv("WHATSAPP_ACCESS_TOKEN", "")
    WHATSAPP_PHONE_NUMBER_ID = os.getenv("WHATSAPP_PHONE_NUMBER_ID", "")

    # Agent API Configuration
    AGENT_PORT = int(os.getenv("AGENT_PORT", "8000"))

    # LLM Backend Configuration
    LLM_BACKEND = os.getenv("LLM_BACKEND", "ollama")
    OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3")

    # Environment
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Durable profile/history store
    PROFILE_STORE = os.getenv("PROFILE_STORE", "sqlite")
    SQLITE_DB_PATH = os.getenv("SQLITE_DB_PATH", "./conversations.db")

    # NLP catalog and prompt templates
    CATALOG_PATH = os.getenv("CATALOG_PATH", "")
    TEMPLATES_DIR = os.getenv("TEMPLATES_DIR", "")

    @classmethod
    def validate(cls) -> bool:
        """Validate that required configuration is set."""
        required = ["WHATSAPP_VERIFY_TOKEN", "WHATSAPP_ACCESS_TOKEN", "WHATSAPP_PHONE_NUMBER_ID"]
        missing = [key for key in required if not getattr(cls, key)]

        if missing:
            logger.warning(f"Missing required environment variables: {', '.join(missing)}")
            return False

        return True
