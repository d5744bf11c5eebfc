import os
from pathlib import Path
from dotenv import load_dotenv

# Load biến môi trường trong .env
BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    FAL_QUEUE_URL: str = os.getenv("FAL_QUEUE_URL", "https://queue.fal.run")
    FAL_MODEL: str = os.getenv("FAL_MODEL", "fal-ai/nano-banana-pro")

    FAL_KEY: str | None = os.getenv("FAL_KEY")

    POLL_INTERVAL: float = float(os.getenv("POLL_INTERVAL", "0.5"))  # giây
    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "300"))

    INCLUDE_LOGS: bool = _env_bool("INCLUDE_LOGS", True)
    CANCEL_REMOTE_ON_ABORT: bool = _env_bool("CANCEL_REMOTE_ON_ABORT", True)

settings = Settings()
