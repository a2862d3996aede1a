"""
Config Maker
"""

# pyright: basic

__all__ = ("settings",)

from pydantic_settings import BaseSettings

from flowstate import __project__, __version__


class Settings(BaseSettings):
    PROJECT_NAME: str = __project__
    PROJECT_VERSION: str = __version__
    DEBUG: bool = False
    LOG_MESSAGE_MAX_LEN: int = 2000

    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 3001
    APP_WORKERS: int = 1
    APP_AUTH_KEY: str | None = None  # None = open API (local dev tool)
    # Root that client-supplied code paths are resolved under; unset disables code_path
    PROJECT_ROOT: str | None = None

    GOOGLE_API_KEY: str | None = None

    # Models
    INSPECTOR_MODEL: str = "gemini-3-pro-preview"
    SURGEON_MODEL: str = "gemini-3-pro-preview"
    STYLIST_MODEL: str = "gemini-3-pro-preview"
    CHAT_MODEL: str = "gemini-2.0-flash"
    ARTIST_MODEL: str = "gemini-3-pro-image-preview"

    # Storage
    STORAGE_DIR: str = "./data"
    USAGE_FILE: str = "./usage-data.json"
    ASSETS_DIR: str = "./generated-assets"
    PREVIEW_SUFFIX: str = ".flowstate-preview"
    MAX_SCREENSHOT_SIZE_MB: int = 20
    ASSET_EXTENSIONS: list[str] = [".png", ".jpg", ".jpeg", ".gif", ".webp"]

    # Budget
    DEFAULT_BUDGET: float = 10.0
    ASSET_ESTIMATED_COST: float = 0.02
    USAGE_HISTORY_LIMIT: int = 100

    # Heal loop
    HEAL_MAX_ITERATIONS: int = 2
    HEAL_TIMEOUT_SECONDS: float | None = None
    MIN_PATCH_LENGTH: int = 10

    # Local analyzer thresholds
    ANALYZER_MIN_PADDING_PX: int = 8
    ANALYZER_MIN_FONT_PX: int = 14
    ANALYZER_MIN_CONTRAST: float = 3.0
    ANALYZER_MAX_MARGIN_DRIFT_PX: int = 8
    ANALYZER_SIBLING_SAMPLE: int = 5

    # Timeouts & retries
    AI_API_TIMEOUT_SECONDS: int = 90
    AI_API_MAX_RETRIES: int = 2

    # Fingerprint cache
    ANALYSIS_CACHE_TTL: int = 3600

    class Config:
        env_file = ".env"
        env_prefix = "FLOWSTATE_"
        env_file_encoding = "utf-8"
        extra = "ignore"
        case_sensitive = True


settings = Settings()
