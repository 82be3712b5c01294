from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = "local"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    database_url: str = "sqlite:///./board_presence.db"

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"

    board_lock_ttl_seconds: int = 60
    board_lock_cleanup_interval_seconds: int = 30
    presence_global_fanout: bool = True


settings = Settings()
