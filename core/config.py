from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    DATABASE_URL: str = Field(..., description="Async SQLAlchemy connection string (postgresql+asyncpg://...)")

    # Redis (empty disables code reservation in Redis)
    REDIS_URL: str = Field("", description="redis://localhost:6379/0")

    # LLM generation service (OpenAI-compatible chat completions)
    LLM_API_URL: str = Field("https://api.openai.com/v1/chat/completions")
    LLM_API_KEY: str = Field("", description="API key for the generation service")
    LLM_MODEL: str = Field("gpt-4o", description="Model identifier sent with every prompt")
    LLM_TIMEOUT_SECONDS: float = 60.0
    LLM_TEMPERATURE: float = 0.7

    # Sessions
    MAX_QUESTIONS_PER_SESSION: int = 50
    SESSION_CODE_LENGTH: int = 6
    SESSION_CODE_MAX_ATTEMPTS: int = 5
    SESSION_CODE_TTL_SECONDS: int = 86400  # 24 hours

    # Scoring
    OPEN_SCORE_MIN: int = 1
    OPEN_SCORE_MAX: int = 100
    MCQ_CORRECT_SCORE: int = 100
    MCQ_CORRECT_SCORE_MAX: int = 1000
    MCQ_INCORRECT_SCORE: int = 0

    # Environment
    CORS_ORIGINS: str = Field("http://localhost:5173", description="Comma separated list of allowed origins")
    ENV: str = "production"  # development, staging, production
    DEBUG: bool = False

settings = Settings()
