from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AnyHttpUrl, SecretStr


class Settings(BaseSettings):
    wiki_base_url: str = "https://en.wikipedia.org"
    wiki_api_url: AnyHttpUrl = "https://en.wikipedia.org/w/api.php"
    wiki_language: str = "en"

    revert_risk_url: AnyHttpUrl = (
        "https://api.wikimedia.org/service/lw/inference/v1/models/"
        "revertrisk-language-agnostic:predict"
    )
    # Which identifier of the subject revision is sent as `rev_id`
    revert_risk_binding: Literal["user_id", "revision_id"] = "user_id"
    revert_risk_max_attempts: int = 3

    user_agent: str = "npov-classifier/0.1 (research; NPOV edit classification)"
    http_timeout: float = 30.0

    rate_limit_wait_seconds: float = 10.0
    rate_limit_max_retries: int = 3

    fetch_all_diffs: bool = False
    batch_size: int = 5
    response_cache_max_entries: int = 10000

    openai_api_key: Optional[SecretStr] = None
    llm_model: str = "gpt-4-turbo"
    llm_api_url: str = "https://api.openai.com/v1/chat/completions"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
