"""
PromptLint - Configuration Management
Handles provider settings, analytics thresholds and configuration loading.
"""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from enum import Enum


class ProviderType(Enum):
    """Supported generative providers."""
    CLAUDE = "claude"
    OPENAI = "openai"
    GEMINI = "gemini"
    OLLAMA = "ollama"


# Providers that run locally and need no API key
KEYLESS_PROVIDERS = {ProviderType.OLLAMA}


@dataclass
class ProviderConfig:
    """A single generative provider entry."""
    provider: ProviderType
    api_key: str = ""
    is_enabled: bool = False
    is_primary: bool = False
    priority: int = 1  # 1 = highest
    model_id: Optional[str] = None
    base_url: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        if not self.is_enabled:
            return False
        if self.provider in KEYLESS_PROVIDERS:
            return True
        return bool(self.api_key and self.api_key.strip())

    def to_summary(self) -> Dict[str, Any]:
        """Settings view without the secret."""
        return {
            "provider": self.provider.value,
            "is_enabled": self.is_enabled,
            "is_primary": self.is_primary,
            "priority": self.priority,
            "model_id": self.model_id,
            "has_api_key": bool(self.api_key and self.api_key.strip()),
        }


@dataclass
class AIConfig:
    """AI rewrite configuration."""
    providers: List[ProviderConfig] = field(default_factory=list)
    timeout_seconds: float = 15.0
    candidate_count: int = 3
    max_attempts: int = 2
    max_tokens: int = 1500
    temperature: float = 0.7


@dataclass
class AnalysisConfig:
    """Issue derivation settings."""
    max_issues: int = 5
    weak_threshold: float = 0.5
    high_severity_threshold: float = 0.3


@dataclass
class HistoryConfig:
    """History analytics constants. Pending product calibration."""
    trend_change_threshold: float = 0.20
    min_streak_improvements: int = 2
    prediction_variance_threshold: float = 100.0
    prediction_high_samples: int = 10
    prediction_medium_samples: int = 5
    default_days: int = 30
    default_weakness_limit: int = 3
    default_streak_limit: int = 5
    project_rolling_window: int = 20


@dataclass
class StorageConfig:
    """History log location."""
    data_dir: Path = field(default_factory=lambda: Path.cwd() / "data")
    history_file: str = "history.jsonl"

    @property
    def history_path(self) -> Path:
        return self.data_dir / self.history_file


@dataclass
class AppConfig:
    """Complete application configuration."""
    ai: AIConfig = field(default_factory=AIConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    base_path: Path = field(default_factory=lambda: Path.cwd())


# Environment variables holding provider API keys
API_KEY_ENV_VARS = {
    ProviderType.CLAUDE: "PROMPTLINT_CLAUDE_API_KEY",
    ProviderType.OPENAI: "PROMPTLINT_OPENAI_API_KEY",
    ProviderType.GEMINI: "PROMPTLINT_GEMINI_API_KEY",
}


class ConfigManager:
    """
    Manages configuration loading.

    Priority for each setting:
    1. Environment variable (PROMPTLINT_*)
    2. config/default.yaml
    3. Built-in dataclass default
    """

    def __init__(self, base_path: Optional[Path] = None):
        self.base_path = Path(base_path) if base_path else Path.cwd()
        self.config_dir = self.base_path / "config"
        self._config: Optional[AppConfig] = None

    def load_yaml(self, filepath: Path) -> Dict[str, Any]:
        """Load a YAML configuration file."""
        if not filepath.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(filepath, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def load_default_config(self) -> Dict[str, Any]:
        """Load default configuration, or an empty mapping if there is none."""
        default_file = self.config_dir / "default.yaml"
        if not default_file.exists():
            return {}
        return self.load_yaml(default_file)

    def parse_providers(self, entries: List[Dict[str, Any]]) -> List[ProviderConfig]:
        """Build provider configs, filling API keys from the environment."""
        providers = []
        for entry in entries or []:
            provider_type = ProviderType(entry["provider"])
            env_var = API_KEY_ENV_VARS.get(provider_type)
            api_key = os.environ.get(env_var, "") if env_var else ""
            providers.append(ProviderConfig(
                provider=provider_type,
                api_key=api_key or entry.get("api_key", "") or "",
                is_enabled=bool(entry.get("is_enabled", bool(api_key))),
                is_primary=bool(entry.get("is_primary", False)),
                priority=int(entry.get("priority", 1)),
                model_id=entry.get("model_id"),
                base_url=entry.get("base_url")
            ))

        # A key supplied only via the environment still enables its provider
        configured = {p.provider for p in providers}
        for provider_type, env_var in API_KEY_ENV_VARS.items():
            api_key = os.environ.get(env_var, "")
            if api_key and provider_type not in configured:
                providers.append(ProviderConfig(
                    provider=provider_type,
                    api_key=api_key,
                    is_enabled=True,
                    priority=len(providers) + 1
                ))

        primary_env = os.environ.get("PROMPTLINT_PRIMARY_PROVIDER", "").lower()
        if primary_env:
            for provider in providers:
                provider.is_primary = provider.provider.value == primary_env

        return providers

    def load(self) -> AppConfig:
        """
        Load complete application configuration.

        Returns:
            Complete AppConfig instance.
        """
        default = self.load_default_config()

        ai_data = dict(default.get("ai", {}))
        providers = self.parse_providers(ai_data.pop("providers", []))
        ai_config = AIConfig(providers=providers, **ai_data)

        timeout_env = os.environ.get("PROMPTLINT_AI_TIMEOUT")
        if timeout_env:
            ai_config.timeout_seconds = float(timeout_env)

        storage_data = dict(default.get("storage", {}))
        data_dir = os.environ.get("PROMPTLINT_DATA_DIR") or storage_data.pop("data_dir", None)
        storage_data.pop("data_dir", None)
        storage_config = StorageConfig(
            data_dir=self._resolve_path(data_dir) if data_dir else self.base_path / "data",
            **storage_data
        )

        self._config = AppConfig(
            ai=ai_config,
            analysis=AnalysisConfig(**default.get("analysis", {})),
            history=HistoryConfig(**default.get("history", {})),
            storage=storage_config,
            base_path=self.base_path
        )

        return self._config

    def _resolve_path(self, value: str) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.base_path / path

    @property
    def config(self) -> AppConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load()
        return self._config

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the current configuration for the UI."""
        config = self.config
        return {
            "providers": [p.to_summary() for p in config.ai.providers],
            "ai_timeout_seconds": config.ai.timeout_seconds,
            "candidate_count": config.ai.candidate_count,
            "history_file": str(config.storage.history_path),
        }


# Global config manager instance (used by the HTTP launcher only)
_config_manager: Optional[ConfigManager] = None


def get_config_manager(base_path: Optional[Path] = None) -> ConfigManager:
    """Get or create the global config manager."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(base_path)
    return _config_manager


def get_config() -> AppConfig:
    """Get the current application configuration."""
    return get_config_manager().config
