from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional

import os
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))  # backend/
ENV_PATH = os.path.join(BASE_DIR, ".env")
DEFAULT_DATA_DIR = os.path.join(BASE_DIR, "data")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=ENV_PATH,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ---- Provider routing ----
    # Comma separated, highest priority first. "mock" is always tried last.
    llm_priority: str = Field(default="groq,gemini,mistral", alias="LLM_PRIORITY")
    provider_timeout_seconds: float = Field(default=20.0, alias="PROVIDER_TIMEOUT_SECONDS")
    llm_temperature: float = Field(default=0.4, alias="LLM_TEMPERATURE")

    # ---- OpenAI (Responses API) ----
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    openai_model: str = Field(default="gpt-4.1-mini", alias="OPENAI_MODEL")

    # ---- LiteLLM backed providers ----
    litellm_api_base: Optional[str] = Field(default=None, alias="LITELLM_API_BASE")
    groq_api_key: Optional[str] = Field(default=None, alias="GROQ_API_KEY")
    groq_model: str = Field(default="groq/llama-3.3-70b-versatile", alias="GROQ_MODEL")
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini/gemini-1.5-flash", alias="GEMINI_MODEL")
    mistral_api_key: Optional[str] = Field(default=None, alias="MISTRAL_API_KEY")
    mistral_model: str = Field(default="mistral/mistral-small-latest", alias="MISTRAL_MODEL")

    # ---- Data ----
    data_dir: str = Field(default=DEFAULT_DATA_DIR, alias="DATA_DIR")
    registry_dir: Optional[str] = Field(default=None, alias="REGISTRY_DIR")
    tenants_dir: Optional[str] = Field(default=None, alias="TENANTS_DIR")
    products_dir: Optional[str] = Field(default=None, alias="PRODUCTS_DIR")

    # ---- Session store ----
    session_max_items: int = Field(default=2000, alias="SESSION_MAX_ITEMS")
    session_ttl_seconds: int = Field(default=86400, alias="SESSION_TTL_SECONDS")

    # ---- Catalog ----
    search_limit: int = Field(default=10, alias="SEARCH_LIMIT")
    # Cosine similarity floor for the preference recommender (0.0 to 1.0).
    recommend_min_score: float = Field(default=0.25, alias="RECOMMEND_MIN_SCORE")

    # Logging
    log_dir: str = Field(default="logs/", alias="LOG_DIR")

    def provider_priority(self) -> List[str]:
        order = [p.strip().lower() for p in self.llm_priority.split(",") if p.strip()]
        order = [p for p in order if p != "mock"]
        return order + ["mock"]

    def registry_path(self) -> str:
        return self.registry_dir or os.path.join(self.data_dir, "registry")

    def tenants_path(self) -> str:
        return self.tenants_dir or os.path.join(self.data_dir, "tenants")

    def products_path(self) -> str:
        return self.products_dir or os.path.join(self.data_dir, "products")


settings = Settings()
