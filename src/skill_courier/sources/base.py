"""Base class for marketplace sources."""

from abc import ABC, abstractmethod

from skill_courier.models import ArtifactType, MarketplaceArtifact


def infer_type(*texts: str) -> ArtifactType:
    """Guess a listing's type from its name, URL, description or tags."""
    combined = " ".join(t for t in texts if t).lower()
    if "agent" in combined:
        return ArtifactType.AGENT
    if "plugin" in combined:
        return ArtifactType.PLUGIN
    return ArtifactType.SKILL


class ArtifactSource(ABC):
    """An independent catalog of installable artifacts.

    fetch_artifacts() may raise on network or parse errors; the aggregator
    isolates each source's failures from the others.
    """

    def __init__(self, id: str, name: str, description: str = ""):
        self.id = id
        self.name = name
        self.description = description
        self.enabled = True

    def is_enabled(self) -> bool:
        return self.enabled

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    async def fetch_artifacts(self) -> list[MarketplaceArtifact]:
        if not self.enabled:
            return []
        return await self._fetch()

    @abstractmethod
    async def _fetch(self) -> list[MarketplaceArtifact]: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"
