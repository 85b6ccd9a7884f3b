import os
from logging.config import dictConfig

from dotenv import load_dotenv

load_dotenv()


class Settings:
    def __init__(self):
        # GitHub App credentials
        self.GITHUB_APP_IDENTIFIER: str | None = os.getenv("GITHUB_APP_IDENTIFIER")
        self.GITHUB_PRIVATE_KEY: str | None = os.getenv("GITHUB_PRIVATE_KEY")
        self.GITHUB_PRIVATE_KEY_PATH: str | None = os.getenv("GITHUB_PRIVATE_KEY_PATH")

        # Webhook
        self.GITHUB_WEBHOOK_SECRET: str | None = os.getenv("GITHUB_WEBHOOK_SECRET")

        # GitHub API
        self.GITHUB_API_URL: str = os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip("/")
        self.TOKEN_EXCHANGE_TIMEOUT: float = float(os.getenv("TOKEN_EXCHANGE_TIMEOUT", "10"))
        self.TOKEN_EXCHANGE_MAX_RETRIES: int = int(os.getenv("TOKEN_EXCHANGE_MAX_RETRIES", "0"))
        self.RETRY_DELAY: float = float(os.getenv("RETRY_DELAY", "1.0"))
        self.TOKEN_CACHE_ENABLED: bool = os.getenv("TOKEN_CACHE_ENABLED", "false").lower() in ("true", "1", "t")

        # Event handlers
        self.NEEDS_RESPONSE_LABEL: str = os.getenv("NEEDS_RESPONSE_LABEL", "needs-response")

        # Server
        self.PORT: int = int(os.getenv("PORT", "3000"))
        self.HOST: str = os.getenv("HOST", "0.0.0.0")

        # Logging
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def validate_settings(self):
        if not self.GITHUB_APP_IDENTIFIER:
            raise ValueError("GITHUB_APP_IDENTIFIER environment variable not set.")
        if not self.GITHUB_PRIVATE_KEY and not self.GITHUB_PRIVATE_KEY_PATH:
            raise ValueError("GITHUB_PRIVATE_KEY or GITHUB_PRIVATE_KEY_PATH environment variable not set.")
        if not self.GITHUB_WEBHOOK_SECRET:
            raise ValueError("GITHUB_WEBHOOK_SECRET environment variable not set.")
        if self.TOKEN_EXCHANGE_TIMEOUT <= 0:
            raise ValueError("TOKEN_EXCHANGE_TIMEOUT must be positive.")
        if self.TOKEN_EXCHANGE_MAX_RETRIES < 0:
            raise ValueError("TOKEN_EXCHANGE_MAX_RETRIES must not be negative.")

    def __repr__(self):
        # Never echo key material or the webhook secret.
        return (
            f"Settings(GITHUB_APP_IDENTIFIER={self.GITHUB_APP_IDENTIFIER!r}, "
            f"GITHUB_API_URL={self.GITHUB_API_URL!r}, "
            f"TOKEN_EXCHANGE_TIMEOUT={self.TOKEN_EXCHANGE_TIMEOUT}, "
            f"TOKEN_EXCHANGE_MAX_RETRIES={self.TOKEN_EXCHANGE_MAX_RETRIES}, "
            f"TOKEN_CACHE_ENABLED={self.TOKEN_CACHE_ENABLED}, "
            f"LOG_LEVEL={self.LOG_LEVEL!r})"
        )


settings = Settings()

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "()": "uvicorn.logging.DefaultFormatter",
            "fmt": "%(levelprefix)s %(asctime)s - %(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "github_app": {"handlers": ["default"], "level": settings.LOG_LEVEL, "propagate": False},
        "uvicorn.error": {"level": "INFO"},
        "uvicorn.access": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "httpx": {"level": "WARNING"},
    },
}

def setup_logging():
    dictConfig(LOGGING_CONFIG)
