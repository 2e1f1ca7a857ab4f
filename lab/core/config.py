from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ═══════════════════════════════════════════════════
    # FastAPI Application Settings
    # ═══════════════════════════════════════════════════
    APP_NAME: str = "Tic-Tac-Toe AI Lab"
    VERSION: str = "0.1.0"
    ENV: str = "development"  # "development" | "production"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # ═══════════════════════════════════════════════════
    # Server Configuration
    # ═══════════════════════════════════════════════════
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ═══════════════════════════════════════════════════
    # Results Store (batch persistence + history)
    # ═══════════════════════════════════════════════════
    STORE_API_URL: str = "http://localhost:3001/api"
    SUBMIT_ENDPOINT: str = "postTicTacToeGames"
    HISTORY_ENDPOINT: str = "getTicTacToeGames"
    HTTP_TIMEOUT: float = 10.0  # seconds

    # ═══════════════════════════════════════════════════
    # Simulation
    # ═══════════════════════════════════════════════════
    BATCH_SIZE: int = 10
    DEFAULT_SPEED: int = 250  # ms between moves
    MIN_SPEED: int = 50
    MAX_SPEED: int = 1000
    SPEED_STEP: int = 50
    HISTORY_POLL_INTERVAL: float = 30.0  # seconds
    AUTOSTART: bool = True

    # ═══════════════════════════════════════════════════
    # CORS Configuration
    # ═══════════════════════════════════════════════════
    CORS_ORIGINS: list[str] = ["*"]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: list[str] = ["*"]
    CORS_HEADERS: list[str] = ["*"]

    class Config:
        env_file = ".env"
        extra = "ignore"


_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Return the process-wide Settings instance (created on first call).

    Used through FastAPI dependency injection:

    @app.get("/info")
    def info(settings: Settings = Depends(get_settings)):
        return {"env": settings.ENV}
    """
    global _settings
    if not _settings:
        _settings = Settings()
    return _settings
