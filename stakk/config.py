from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")

    app_env: str = "prod"
    database_url: str
    api_key: str
    log_level: str = "INFO"

    max_suggestions: int = 10
    notifications_authorized: bool = True


settings = Settings()
