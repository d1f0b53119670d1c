"""
ConvoFlow Configuration Settings

LLM Provider Configuration:
---------------------------
This module loads completion backend settings from the .env file.
Configure ONE provider at a time by setting the appropriate USE_* flag:
- USE_MOCK=true       -> Deterministic mock backend (default, no network)
- USE_OPENROUTER=true -> OpenRouter (OpenAI-compatible)
- USE_OLLAMA=true     -> On-Premise Ollama (OpenAI-compatible)
- USE_OPENAI=true     -> Direct OpenAI API

Conversation Configuration:
---------------------------
- CONVO_MODE: "auto" (no approval gates) or "manual" (human approval gates)
- CONVO_MAX_RETRIES: Retry budget per agent within a run
- CONVO_TIMEOUT_SECONDS: Timeout applied to every completion call
- CONVO_AUDIT_DIR: Directory for JSONL audit trails (unset = in-memory)
"""

import os
from pydantic import BaseModel
from dotenv import load_dotenv
from typing import Optional

# Load environment variables from .env file
load_dotenv()


class LLMSettings(BaseModel):
    """Completion backend settings"""

    # Provider flags (only one should be true at a time)
    use_mock: bool = os.getenv('USE_MOCK', 'true').lower() == 'true'
    use_openrouter: bool = os.getenv('USE_OPENROUTER', 'false').lower() == 'true'
    use_ollama: bool = os.getenv('USE_OLLAMA', 'false').lower() == 'true'
    use_openai: bool = os.getenv('USE_OPENAI', 'false').lower() == 'true'

    # OpenRouter settings
    openrouter_api_key: Optional[str] = os.getenv('OPENROUTER_API_KEY')
    openrouter_base_url: str = os.getenv('OPENROUTER_BASE_URL', 'https://openrouter.ai/api/v1')
    openrouter_model: str = os.getenv('OPENROUTER_MODEL', 'anthropic/claude-3-haiku')

    # Ollama settings
    ollama_base_url: str = os.getenv('OLLAMA_BASE_URL', 'http://localhost:11434/v1')
    ollama_model: str = os.getenv('OLLAMA_MODEL', 'llama3.1:8b')

    # Direct OpenAI settings
    openai_api_key: Optional[str] = os.getenv('OPENAI_API_KEY')
    openai_model: str = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')

    def get_active_provider(self) -> str:
        """Get the currently active provider name."""
        if self.use_openrouter:
            return 'openrouter'
        elif self.use_ollama:
            return 'ollama'
        elif self.use_openai:
            return 'openai'
        else:
            return 'mock'


class ConversationSettings(BaseModel):
    """Defaults for conversation runs"""

    mode: str = os.getenv('CONVO_MODE', 'auto')  # auto | manual
    max_retries: int = int(os.getenv('CONVO_MAX_RETRIES', '3'))
    timeout_seconds: float = float(os.getenv('CONVO_TIMEOUT_SECONDS', '30'))
    audit_dir: Optional[str] = os.getenv('CONVO_AUDIT_DIR') or None
    log_buffer_size: int = int(os.getenv('CONVO_LOG_BUFFER_SIZE', '1000'))


class Settings(BaseModel):
    """Application Settings"""

    app_name: str = os.getenv('APP_NAME', 'convoflow')
    log_level: str = os.getenv('LOG_LEVEL', 'INFO')

    llm: LLMSettings = LLMSettings()
    conversation: ConversationSettings = ConversationSettings()


# Global settings instance
settings = Settings()

