import logging
import sys

from pydantic_settings import BaseSettings
from typing import Optional


def setup_logging():
    """Configure application logging."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# Initialize logging on import
setup_logging()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Ollama backend
    ollama_url: Optional[str] = None
    ollama_api_key: Optional[str] = None

    # Access code required from callers (optional; open relay when unset)
    access_code: Optional[str] = None

    # Computed field: hashed access code (set after initialization)
    _access_code_hash: Optional[str] = None

    @property
    def access_code_hash(self) -> Optional[str]:
        """Get the hashed access code."""
        if not self.access_code:
            return None
        if self._access_code_hash is None:
            # Lazy import to avoid circular dependency with auth.py
            from ollama_relay.utils.auth import hash_password
            self._access_code_hash = hash_password(self.access_code)
        return self._access_code_hash

    # Skip the backend call for model listing and report no models
    disable_list_models: bool = False

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Seconds to wait for the first backend response (10 minutes)
    request_timeout: int = 600

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

if settings.debug:
    logging.getLogger("ollama_relay").setLevel(logging.DEBUG)
