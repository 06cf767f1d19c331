"""
Settings for the OCR overlay core.

Loaded from environment / ``.env`` and converted into the frozen
``EngineConfig`` the analysis stages consume.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import EngineConfig, OCRLanguage, TranslationEngine, TranslationLanguage


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Language selection
    source_language: OCRLanguage = OCRLanguage.AUTO
    target_language: TranslationLanguage = TranslationLanguage.TRADITIONAL_CHINESE

    # Translation backend
    translation_engine: TranslationEngine = TranslationEngine.OLLAMA
    ollama_api_url: Optional[str] = None
    ollama_model: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"

    # Model storage (weights are provisioned externally)
    model_root: str = "./models"
    nmt_model_dir: Optional[str] = None

    def resolved_nmt_dir(self) -> str:
        if self.nmt_model_dir:
            return self.nmt_model_dir
        return str(Path(self.model_root) / "nmt")

    def to_engine_config(self) -> EngineConfig:
        return EngineConfig(
            source_language=self.source_language,
            target_language=self.target_language,
            engine=self.translation_engine,
            ollama_api_url=self.ollama_api_url,
            ollama_model=self.ollama_model,
            gemini_api_key=self.gemini_api_key,
            gemini_model=self.gemini_model,
            nmt_model_dir=self.resolved_nmt_dir(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
