"""Typed deployment configuration loaded from the environment and ``.env``."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent


class PortalEnv(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    DJANGO_SECRET_KEY: str = Field(default="django-insecure-exam-portal-dev-key")
    DJANGO_DEBUG: bool = False
    # Comma separated host names
    DJANGO_ALLOWED_HOSTS: str = "localhost,127.0.0.1"

    DJANGO_DB_ENGINE: str = "sqlite3"
    DJANGO_DB_NAME: str = ""
    DJANGO_DB_USER: str = ""
    DJANGO_DB_PASSWORD: str = ""
    DJANGO_DB_HOST: str = "localhost"
    DJANGO_DB_PORT: str = ""

    JWT_ACCESS_HOURS: int = Field(default=8, gt=0)
    JWT_REFRESH_DAYS: int = Field(default=7, gt=0)

    DJANGO_EMAIL_BACKEND: str = "django.core.mail.backends.console.EmailBackend"
    EMAIL_HOST: str = "localhost"
    EMAIL_PORT: int = 25
    EMAIL_HOST_USER: str = ""
    EMAIL_HOST_PASSWORD: str = ""
    EMAIL_USE_TLS: bool = False
    DEFAULT_FROM_EMAIL: str = "Exam Portal <no-reply@exam-portal.local>"

    EXAM_PORTAL_NOTIFIER: str = "notifications.notifier.DatabaseNotifier"
    DJANGO_LOG_LEVEL: str = "INFO"

    @property
    def allowed_hosts(self):
        return [host.strip() for host in self.DJANGO_ALLOWED_HOSTS.split(",") if host.strip()]


@lru_cache()
def get_env() -> PortalEnv:
    return PortalEnv()
