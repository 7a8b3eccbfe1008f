"""Application configuration loaded from environment variables."""

from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # NebulaGraph (record store)
    nebula_graphd_host: str = "127.0.0.1"
    nebula_graphd_port: int = 9669
    nebula_user: str = "root"
    nebula_password: str = "nebula"
    nebula_space: str = "sheetport"

    # Ollama (mapping suggestions)
    ollama_enabled: bool = True
    ollama_base_url: str = "http://127.0.0.1:11434"
    ollama_model: str = "llama3.1"
    ollama_timeout_seconds: float = 30.0
    oracle_max_tokens: int = 100_000
    oracle_warning_threshold: float = 0.8
    oracle_estimated_tokens_per_call: int = 2500

    # Import behaviour
    lookup_timeout_seconds: float = 10.0
    validation_sample_size: int = 100
    default_locale: str = "en-US"

    # Paths (relative to project root)
    schemas_dir: str = "schemas"
    profiles_dir: str = "profiles"
    uploads_dir: str = "data/uploads"

    @property
    def project_root(self) -> Path:
        return Path(__file__).parent.parent.parent

    def resolve_path(self, value: str) -> Path:
        path = Path(value)
        if not path.is_absolute():
            path = self.project_root / path
        return path

    model_config = {"env_file": ".env", "env_prefix": "", "extra": "ignore"}


settings = Settings()
