import os


class Settings:
    """Application settings. Every property reads the environment on access."""

    @property
    def app_name(self) -> str:
        return "Jail Visitation Backend"

    @property
    def environment(self) -> str:
        env = (os.getenv("ENV") or os.getenv("NODE_ENV") or "").lower()
        # Hosting platforms inject PORT; treat that as production too
        if env == "production" or os.getenv("PORT"):
            return "production"
        return "development"

    @property
    def cors_origin(self) -> str:
        return os.getenv("CORS_ORIGIN", "http://localhost:3000")

    @property
    def app_timezone(self) -> str:
        return os.getenv("APP_TIMEZONE", "Asia/Manila").strip() or "Asia/Manila"

    @property
    def recent_scan_window_seconds(self) -> int:
        raw = os.getenv("RECENT_SCAN_WINDOW_SECONDS", "5")
        try:
            return max(0, int(raw))
        except ValueError:
            return 5


_settings_instance = None


def get_settings() -> Settings:
    """Returns the shared Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def clear_settings_cache():
    """Drops the shared Settings instance so the next call builds a new one."""
    global _settings_instance
    _settings_instance = None
