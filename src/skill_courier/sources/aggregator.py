"""Aggregate marketplace listings from every registered source."""

import asyncio
import logging
from collections.abc import Iterable

from skill_courier.config import Settings
from skill_courier.core.cache import SourceCache
from skill_courier.core.fetcher import ContentFetcher
from skill_courier.models import (
    AggregatedResult,
    ArtifactType,
    MarketplaceArtifact,
    SourceError,
    SourceInfo,
)
from skill_courier.sources.awesome_list import AwesomeListSource
from skill_courier.sources.base import ArtifactSource
from skill_courier.sources.github_topic import GitHubTopicSource

logger = logging.getLogger("skill-courier.aggregator")

CACHE_TTL = 5 * 60.0
CUSTOM_PREFIX = "custom-"


def default_sources(fetcher: ContentFetcher, settings: Settings) -> list[ArtifactSource]:
    """The built-in catalogs plus one awesome-list per configured custom URL."""
    sources: list[ArtifactSource] = [
        AwesomeListSource(
            "awesome-claude-skills",
            "Awesome Claude Skills",
            settings.awesome_list_url,
            fetcher,
            description="Community-curated list of Claude Code skills and agents",
        ),
    ]
    for kind in ("skill", "agent", "plugin"):
        sources.append(
            GitHubTopicSource(
                f"github-claude-{kind}",
                f"GitHub: Claude {kind.title()}s",
                [f"claude-code-{kind}", f"claude-{kind}", f"claudecode-{kind}"],
                fetcher,
                min_stars=settings.topic_min_stars,
                description=f"Repositories tagged with Claude {kind} topics",
            )
        )
    sources.extend(custom_sources(settings.custom_sources, fetcher))
    return sources


def custom_sources(urls: Iterable[str], fetcher: ContentFetcher) -> list[ArtifactSource]:
    return [
        AwesomeListSource(
            f"{CUSTOM_PREFIX}{i}",
            f"Custom Source {i + 1}",
            url,
            fetcher,
            description=f"Custom awesome-list from {url}",
        )
        for i, url in enumerate(urls)
    ]


class SourceAggregator:
    """Fan out to sources concurrently, cache per source, dedup by canonical URL."""

    def __init__(
        self,
        sources: Iterable[ArtifactSource] = (),
        cache: SourceCache | None = None,
        ttl: float = CACHE_TTL,
    ):
        self._sources: dict[str, ArtifactSource] = {}
        self.cache = cache or SourceCache()
        self.ttl = ttl
        for source in sources:
            self.register_source(source)

    # ─── Registry ──────────────────────────────────────────────────────────

    def register_source(self, source: ArtifactSource) -> None:
        self._sources[source.id] = source

    def unregister_source(self, source_id: str) -> None:
        self._sources.pop(source_id, None)
        self.cache.clear(source_id)

    def get_sources(self) -> list[ArtifactSource]:
        return list(self._sources.values())

    def get_source(self, source_id: str) -> ArtifactSource | None:
        return self._sources.get(source_id)

    def load_custom_sources(self, urls: Iterable[str], fetcher: ContentFetcher) -> None:
        """Replace every custom-* source with awesome-lists for the given URLs."""
        for source_id in [sid for sid in self._sources if sid.startswith(CUSTOM_PREFIX)]:
            self.unregister_source(source_id)
        for source in custom_sources(urls, fetcher):
            self.register_source(source)

    def clear_cache(self, source_id: str | None = None) -> None:
        self.cache.clear(source_id)

    # ─── Fetching ──────────────────────────────────────────────────────────

    async def _fetch_source(self, source: ArtifactSource, force_refresh: bool) -> list[MarketplaceArtifact]:
        # Disabled sources list nothing, and that empty list is never cached
        if not source.is_enabled():
            return []
        if not force_refresh:
            cached = self.cache.get(source.id, ttl=self.ttl)
            if cached is not None:
                return cached

        artifacts = await source.fetch_artifacts()
        self.cache.set(source.id, artifacts)
        return artifacts

    async def fetch_all(
        self,
        force_refresh: bool = False,
        source_ids: Iterable[str] | None = None,
    ) -> AggregatedResult:
        """Fetch every selected source in parallel and merge the results.

        Without source_ids, all enabled sources are selected. Results are
        merged in registration order, so when two sources list the same
        canonical URL the earlier-registered source wins regardless of which
        request finished first.
        """
        if source_ids is not None:
            wanted = set(source_ids)
            selected = [s for s in self._sources.values() if s.id in wanted]
        else:
            selected = [s for s in self._sources.values() if s.is_enabled()]

        outcomes = await asyncio.gather(
            *(self._fetch_source(s, force_refresh) for s in selected),
            return_exceptions=True,
        )

        counts: dict[str, int] = {}
        merged: list[MarketplaceArtifact] = []
        errors: list[SourceError] = []
        for source, outcome in zip(selected, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning("Source %s failed: %s", source.id, outcome)
                errors.append(
                    SourceError(source_id=source.id, source_name=source.name, error=str(outcome) or type(outcome).__name__)
                )
                continue
            counts[source.id] = len(outcome)
            merged.extend(outcome)

        seen: set[str] = set()
        unique: list[MarketplaceArtifact] = []
        for artifact in merged:
            if artifact.canonical_url in seen:
                continue
            seen.add(artifact.canonical_url)
            unique.append(artifact)

        infos = [
            SourceInfo(id=s.id, name=s.name, count=counts.get(s.id, 0), enabled=s.is_enabled())
            for s in self._sources.values()
        ]
        logger.info(
            "Aggregated %d artifacts from %d sources (%d errors)", len(unique), len(selected), len(errors)
        )
        return AggregatedResult(artifacts=unique, sources=infos, errors=errors)

    async def search(
        self,
        query: str,
        artifact_type: ArtifactType | str | None = None,
        source_id: str | None = None,
    ) -> list[MarketplaceArtifact]:
        """Case-insensitive text search over name, description, author and tags."""
        result = await self.fetch_all(source_ids=[source_id] if source_id else None)
        wanted_type = ArtifactType(artifact_type) if artifact_type else None
        needle = query.lower()

        matches: list[MarketplaceArtifact] = []
        for artifact in result.artifacts:
            if wanted_type and artifact.type is not wanted_type:
                continue
            haystack = " ".join(
                [artifact.name, artifact.description, artifact.author or "", " ".join(artifact.tags)]
            ).lower()
            if needle in haystack:
                matches.append(artifact)
        return matches

    async def by_type(self, artifact_type: ArtifactType | str) -> list[MarketplaceArtifact]:
        wanted = ArtifactType(artifact_type)
        result = await self.fetch_all()
        return [a for a in result.artifacts if a.type is wanted]
