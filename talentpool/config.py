from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/talentpool.db"
    app_password: str = "changeme"
    secret_key: str = "dev-secret-key-change-in-production"
    log_level: str = "INFO"

    # Invitations
    invitation_expiry_days: int = 30

    # Talent pool listing
    default_page_size: int = 20
    max_page_size: int = 100

    # Premium surfaces (recommendations, analytics, email history)
    premium_features_enabled: bool = True

    site_name: str = "Our Company"
    frontend_base_url: str = "http://localhost:3000"

    # Redis configuration
    redis_url: str = "redis://localhost:6379"

    # Celery configuration
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/0"

    # Email delivery: "log" writes messages to the log, "smtp" sends them
    email_backend: str = "log"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_from_email: str = "talent@localhost"

    # Background scheduler
    scheduler_enabled: bool = True
    expiry_sweep_interval_hours: int = 6
    outbox_flush_interval_minutes: int = 5
    outbox_redispatch_after_minutes: int = 60

    # Match scorer weights (must sum to 1.0)
    match_weights: dict = {
        "skills": 0.45,
        "experience": 0.25,
        "location": 0.20,
        "availability": 0.10,
    }

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
