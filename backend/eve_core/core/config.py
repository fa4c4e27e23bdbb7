# eve_core/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from loguru import logger
from pathlib import Path
from typing import Optional, Tuple


def find_dotenv_path(filename: str = '.env', raise_error_if_not_found: bool = False, usecwd: bool = False) -> Optional[str]:
    """Walks up from this file (or the CWD) looking for a dotenv file."""
    start_dir = Path.cwd() if usecwd else Path(__file__).resolve().parent
    current_dir = start_dir
    for _ in range(10):
        env_path = current_dir / filename
        if env_path.is_file():
            logger.debug(f"Found {filename} file at: {env_path}")
            return str(env_path)
        parent_dir = current_dir.parent
        if parent_dir == current_dir:
            break
        current_dir = parent_dir
    if not usecwd:
        env_path_cwd = Path.cwd() / filename
        if env_path_cwd.is_file():
            logger.debug(f"Found {filename} file at CWD: {env_path_cwd}")
            return str(env_path_cwd)
    logger.debug(f"{filename} not found in parent directories of {start_dir} or CWD.")
    if raise_error_if_not_found:
        raise IOError(f'{filename} not found')
    return None


def dotenv_files() -> Optional[Tuple[str, ...]]:
    """Existing dotenv files, later ones overriding earlier; None when there are none."""
    found = tuple(p for p in (find_dotenv_path('.env'), find_dotenv_path('.env.local')) if p)
    return found or None


class Settings(BaseSettings):
    PROJECT_NAME: str = "EVE Platform Core"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"
    FRONTEND_ORIGIN: str = "http://localhost:5173"
    BRAND_NAME: str = "Mavrika"

    # Supabase (PostgREST + GoTrue)
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_JWT_SECRET: Optional[str] = None  # Enables bearer verification on JSON endpoints
    SUPABASE_TIMEOUT_SECONDS: float = 15.0

    # Cache & background jobs
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"
    BACKFILL_ENABLED: bool = True
    AI_SETTINGS_CACHE_TTL_SECONDS: int = 300

    # AI provider (platform fallback credentials + models)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_ORG_ID: Optional[str] = None
    OPENAI_TIMEOUT_SECONDS: float = 60.0
    OPENAI_CHAT_MODEL: str = "gpt-4"
    OPENAI_RANKING_MODEL: str = "gpt-4"
    OPENAI_CONNECTION_TEST_MODEL: str = "gpt-3.5-turbo"
    TRANSCRIPTION_MODEL: str = "whisper-1"
    SPEECH_MODEL: str = "tts-1"
    DEFAULT_OPENAI_VOICE: str = "alloy"

    # Embedding / memory search
    EMBEDDING_MODEL: str = "text-embedding-ada-002"
    EMBEDDING_DIMENSIONS: int = 1536
    MEMORY_MATCH_THRESHOLD: float = 0.7
    MEMORY_MATCH_COUNT: int = 10

    # Telephony
    TWILIO_AUTH_TOKEN: Optional[str] = None  # Signature check only runs when set
    DEFAULT_TWILIO_VOICE: str = "Polly.Amy"
    PUBLIC_BASE_URL: Optional[str] = None  # External URL Twilio signs against, when behind a proxy

    model_config = SettingsConfigDict(
        env_file=dotenv_files(),
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )


@lru_cache()
def get_settings() -> Settings:
    """Loads and validates application settings."""
    logger.info("Loading application settings...")
    env_files_found = dotenv_files() or ()
    if env_files_found:
        logger.info(f"Loading environment variables from: {', '.join(env_files_found)}")
    else:
        logger.warning("No .env file found. Loading settings from system environment variables only.")

    try:
        settings_instance = Settings()

        required_vars = ['SUPABASE_URL', 'SUPABASE_SERVICE_ROLE_KEY']
        missing = [k for k in required_vars if not getattr(settings_instance, k, None)]
        if missing:
            logger.critical(f"Missing critical environment variables: {', '.join(missing)}")
            raise ValueError(f"Missing critical environment variables: {', '.join(missing)}")

        if not settings_instance.OPENAI_API_KEY:
            logger.warning("OPENAI_API_KEY not set. Only companies with their own OpenAI key will get AI features.")
        if not settings_instance.TWILIO_AUTH_TOKEN:
            logger.warning("TWILIO_AUTH_TOKEN not set. Twilio webhook signatures will not be verified.")
        if not settings_instance.SUPABASE_JWT_SECRET:
            logger.warning("SUPABASE_JWT_SECRET not set. JSON endpoints accept unauthenticated requests.")

        logger.info("Settings loaded and validated successfully.")
        return settings_instance
    except ValueError as val_err:
        logger.critical(f"CRITICAL ERROR in settings validation: {val_err}")
        raise SystemExit(f"Settings validation failed: {val_err}")
    except Exception as e:
        logger.critical(f"CRITICAL ERROR loading settings: {e}")
        raise SystemExit(f"Failed to load critical settings: {e}")


settings = get_settings()
