import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    def __init__(self):
        self.app_name = os.getenv("APP_NAME", "Centro Lúdico")
        self.api_version = "1.0.0"
        self.environment = os.getenv("APP_ENV", "development")
        self.secret_key = os.getenv("SECRET_KEY", "CHANGE_ME")
        self.SECRET_KEY = self.secret_key
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))
        self.ACCESS_TOKEN_EXPIRE_MINUTES = self.access_token_expire_minutes
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./centro_ludico.db")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        self.frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000")
        origins = os.getenv("CORS_ORIGINS")
        self.cors_origins = [o.strip() for o in origins.split(",") if o.strip()] if origins else [self.frontend_url]

        # Email is disabled while smtp_host is unset.
        self.smtp_host = os.getenv("SMTP_HOST")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_username = os.getenv("SMTP_USERNAME")
        self.smtp_password = os.getenv("SMTP_PASSWORD")
        self.smtp_use_tls = _env_bool("SMTP_USE_TLS", True)
        self.email_from = os.getenv("EMAIL_FROM", "no-reply@centroludico.local")

        self.media_root = os.getenv("MEDIA_ROOT", "./media")
        self.public_base_url = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
        self.max_upload_bytes = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

        self.google_client_id = os.getenv("GOOGLE_CALENDAR_CLIENT_ID")
        self.google_client_secret = os.getenv("GOOGLE_CALENDAR_CLIENT_SECRET")
        self.outlook_client_id = os.getenv("OUTLOOK_CLIENT_ID")
        self.outlook_client_secret = os.getenv("OUTLOOK_CLIENT_SECRET")
        self.calendar_timezone = os.getenv("CALENDAR_TIMEZONE", "UTC")

        self.default_teacher_password = os.getenv("DEFAULT_TEACHER_PASSWORD", "centroludico123")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host)


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
