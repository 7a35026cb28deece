from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./sence_sync.db"

    # Remote automation endpoints
    declarations_sync_url: str = (
        "https://api-sence-function.azurewebsites.net/api/declaraciones-juradas"
    )
    course_sync_url: str = (
        "https://sencecursossync.azurewebsites.net/api/extracciondatossence"
    )
    handoff_base_url: str = "https://lce.sence.cl/CertificadoAsistencia/"

    session_ttl_seconds: int = 600
    session_sweep_interval_seconds: int = 120
    remote_timeout_seconds: float = 300.0
    sync_timeout_seconds: float = 300.0

    # Cookie that proves the browser holds a live SENCE session
    sence_session_cookie_name: str = "ASP.NET_SessionId"
    sence_cookie_domain: str = "lce.sence.cl"

    sence_default_otec: str = ""
    sence_default_email: str = ""
    sence_username: str = ""
    sence_password: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
