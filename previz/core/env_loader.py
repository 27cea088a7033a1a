"""
Environment variable loading.

Loads ``.env`` once so API keys are visible to every component.

Usage:
    from previz.core.env_loader import ensure_env_loaded
    ensure_env_loaded()
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_env_loaded = False


def get_project_root() -> Path:
    """Directory expected to hold ``.env`` (two levels above this file)."""
    return Path(__file__).parent.parent.parent


def ensure_env_loaded(env_path: Optional[Path] = None) -> bool:
    """
    Ensure environment variables from .env are loaded.

    Returns:
        True if .env was loaded now, False if already loaded or missing
    """
    global _env_loaded

    if _env_loaded:
        return False

    env_path = Path(env_path) if env_path else get_project_root() / ".env"
    if not env_path.exists():
        return False

    # .env wins over empty system variables
    load_dotenv(env_path, override=True)
    _env_loaded = True
    return True


def get_api_key(key_name: str, fallback_keys: Optional[list] = None) -> Optional[str]:
    """
    Get an API key from environment, with fallback variable names.

    Returns:
        API key value or None if not found
    """
    ensure_env_loaded()

    value = os.getenv(key_name)
    if value:
        return value

    for fallback in fallback_keys or []:
        value = os.getenv(fallback)
        if value:
            return value

    return None


def get_image_api_key() -> Optional[str]:
    """Key for the image-generation service."""
    return get_api_key("IMAGE_API_KEY", ["OPENAI_API_KEY"])


def get_llm_api_key() -> Optional[str]:
    """Key for the text-generation service."""
    return get_api_key("LLM_API_KEY", ["OPENAI_API_KEY"])
