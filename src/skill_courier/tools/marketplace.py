"""Marketplace tools: list and search artifacts across all sources."""

from skill_courier.config import settings
from skill_courier.core.fetcher import ContentFetcher
from skill_courier.models import AggregatedResult, MarketplaceArtifact
from skill_courier.sources.aggregator import SourceAggregator, default_sources

_aggregator: SourceAggregator | None = None


def get_aggregator() -> SourceAggregator:
    """Process-wide aggregator so the per-source cache survives between calls."""
    global _aggregator
    if _aggregator is None:
        fetcher = ContentFetcher.from_settings(settings)
        _aggregator = SourceAggregator(default_sources(fetcher, settings), ttl=settings.cache_ttl)
    return _aggregator


async def list_marketplace(
    force_refresh: bool = False,
    source_ids: list[str] | None = None,
    artifact_type: str | None = None,
) -> AggregatedResult:
    """Fetch the unified listing, optionally filtered to one artifact type."""
    result = await get_aggregator().fetch_all(force_refresh=force_refresh, source_ids=source_ids)
    if artifact_type:
        result.artifacts = [a for a in result.artifacts if a.type.value == artifact_type]
    return result


async def search_marketplace(
    query: str,
    artifact_type: str | None = None,
    source_id: str | None = None,
    limit: int = 20,
) -> list[MarketplaceArtifact]:
    """Search listings by name, description, author and tags."""
    results = await get_aggregator().search(query, artifact_type=artifact_type, source_id=source_id)
    return results[:limit]
