# lingua_eval/core/config.py
import os
from dotenv import load_dotenv

# .env 파일 로드
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    AZURE_OPENAI_ENDPOINT: str = os.getenv("AZURE_OPENAI_ENDPOINT", "")
    AZURE_OPENAI_API_KEY: str = os.getenv("AZURE_OPENAI_API_KEY", "")
    AZURE_OPENAI_DEPLOYMENT: str = os.getenv("AZURE_OPENAI_DEPLOYMENT", "")
    AZURE_OPENAI_API_VERSION: str = os.getenv("AZURE_OPENAI_API_VERSION", "2025-04-01-preview")
    API_TIMEOUT_S: float = float(os.getenv("API_TIMEOUT_S", "15.0"))

    DEFAULT_LEVEL: str = os.getenv("DEFAULT_LEVEL", "B1")
    PROMPT_VERSION: str = os.getenv("PROMPT_VERSION", "v1.0.0")

    BATCH_LIMIT: int = int(os.getenv("BATCH_LIMIT", "10"))
    MAX_CONCURRENCY: int = int(os.getenv("MAX_CONCURRENCY", "1"))
    CHALLENGE_HISTORY_LIMIT: int = int(os.getenv("CHALLENGE_HISTORY_LIMIT", "10"))

    # Gateway parse-failure defaults normally send a stage to its heuristics
    ACCEPT_GATEWAY_DEFAULTS: bool = _env_bool("ACCEPT_GATEWAY_DEFAULTS", False)

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    LANGFUSE_PUBLIC_KEY: str = os.getenv("LANGFUSE_PUBLIC_KEY", "")
    LANGFUSE_SECRET_KEY: str = os.getenv("LANGFUSE_SECRET_KEY", "")
    LANGFUSE_HOST: str = os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com")

    LLM_INPUT_COST_PER_1M: float = float(os.getenv("LLM_INPUT_COST_PER_1M", "0.250"))
    LLM_OUTPUT_COST_PER_1M: float = float(os.getenv("LLM_OUTPUT_COST_PER_1M", "2.0"))

    @property
    def azure_configured(self) -> bool:
        return bool(self.AZURE_OPENAI_ENDPOINT and self.AZURE_OPENAI_API_KEY and self.AZURE_OPENAI_DEPLOYMENT)

    @property
    def langfuse_configured(self) -> bool:
        return bool(self.LANGFUSE_PUBLIC_KEY and self.LANGFUSE_SECRET_KEY)


settings = Settings()
