from pydantic_settings import BaseSettings


class StoreSettings(BaseSettings):
    # App
    APP_NAME: str = "Tic-Tac-Toe Results Store"
    VERSION: str = "0.1.0"
    DEBUG: bool = True
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    CORS_ORIGINS: list[str] = ["*"]

    # History
    HISTORY_LIMIT: int = 50
    MAX_HISTORY_LIMIT: int = 200

    class Config:
        env_file = ".env"
        env_prefix = "STORE_"
        extra = "ignore"


_settings: StoreSettings | None = None


def get_store_settings() -> StoreSettings:
    global _settings
    if not _settings:
        _settings = StoreSettings()
    return _settings
