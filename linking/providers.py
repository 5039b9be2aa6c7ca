"""Provider registry — one entry per linkable third-party account."""

from dataclasses import dataclass
from typing import Dict, Iterable

from config import LINK_PROVIDERS


@dataclass(frozen=True)
class Provider:
    id: str
    label: str
    category: str


KNOWN_PROVIDERS: Dict[str, Provider] = {
    "github": Provider("github", "GitHub", "code-hosting"),
    "linkedin": Provider("linkedin", "LinkedIn", "professional network"),
    "twitter": Provider("twitter", "Twitter", "microblog"),
    "instagram": Provider("instagram", "Instagram", "photo-sharing"),
}


def build_registry(provider_ids: Iterable[str] = LINK_PROVIDERS) -> Dict[str, Provider]:
    """Registry for the configured providers, in configured order."""
    registry: Dict[str, Provider] = {}
    for pid in provider_ids:
        if pid not in KNOWN_PROVIDERS:
            raise ValueError(f"Unknown link provider: {pid}")
        registry[pid] = KNOWN_PROVIDERS[pid]
    return registry
