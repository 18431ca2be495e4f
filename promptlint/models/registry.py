"""
PromptLint - Provider Registry
Builds provider transports and resolves the primary/fallback order.
"""

from typing import Dict, Any, List, Optional

from ..config import AIConfig, ProviderConfig
from .runtime import GenerativeProvider, create_provider


class ProviderRegistry:
    """
    Registry of configured generative providers.

    Handles:
    - Filtering to usable providers (enabled, with a key where one is needed)
    - Priority ordering (1 = highest)
    - Primary selection: first usable provider flagged primary, else the
      highest-priority usable one
    """

    def __init__(self, config: AIConfig, providers: Optional[List[GenerativeProvider]] = None):
        """
        Initialize provider registry.

        Args:
            config: AI configuration.
            providers: Prebuilt transports. When given they are used as-is
                (in the given order) instead of building from `config`.
        """
        self.config = config
        if providers is not None:
            self._providers = list(providers)
        else:
            usable = sorted(
                (p for p in config.providers if p.is_usable),
                key=lambda p: p.priority
            )
            self._providers = [create_provider(p, timeout=config.timeout_seconds) for p in usable]

    def enabled(self) -> List[GenerativeProvider]:
        """Usable providers, primary first, then by priority."""
        primary = self.primary()
        if primary is None:
            return []
        return [primary] + [p for p in self._providers if p is not primary]

    def primary(self) -> Optional[GenerativeProvider]:
        for provider in self._providers:
            if provider.config.is_primary:
                return provider
        return self._providers[0] if self._providers else None

    def has_any_provider(self) -> bool:
        return bool(self._providers)

    def get(self, name: str) -> Optional[GenerativeProvider]:
        for provider in self._providers:
            if provider.name == name:
                return provider
        return None

    def summary(self) -> Dict[str, Any]:
        """Registry state for the settings view. Contains no secrets."""
        primary = self.primary()
        configured: List[ProviderConfig] = self.config.providers
        return {
            "has_provider": self.has_any_provider(),
            "primary": primary.name if primary else None,
            "enabled": [p.name for p in self.enabled()],
            "configured": [p.to_summary() for p in configured],
        }
