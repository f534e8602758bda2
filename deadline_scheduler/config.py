from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timezone: str = "Asia/Ho_Chi_Minh"
    database_url: str | None = None
    sqlite_path: str = "data/app.db"
    log_path: str = "logs/app.log"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    scheduler_enabled: bool = True
    daily_run_hour: int = 8
    minutely_interval_sec: int = 60
    card_deadline_window_min: int = 10

    frontend_url: str = "https://jtsc.io.vn"
    resend_api_url: str = "https://api.resend.com/emails"
    resend_api_key: str = ""
    from_email: str = "JTSC Project <noreply@jtscpro.top>"

    vapid_public_key: str = ""
    vapid_private_key: str = ""
    vapid_email: str = "mailto:admin@jtsc.io.vn"


settings = Settings()
