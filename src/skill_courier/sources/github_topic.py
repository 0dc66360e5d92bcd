"""Source that searches GitHub repositories by topic."""

import logging

from skill_courier.core.fetcher import ContentFetcher
from skill_courier.errors import InstallError
from skill_courier.models import MarketplaceArtifact
from skill_courier.sources.base import ArtifactSource, infer_type

logger = logging.getLogger("skill-courier.sources.github")

SEARCH_API_URL = "https://api.github.com/search/repositories"


def repo_to_artifact(repo: dict, source_id: str) -> MarketplaceArtifact:
    topics = repo.get("topics") or []
    description = repo.get("description") or ""
    name = repo.get("name") or repo.get("full_name", "unknown")
    return MarketplaceArtifact(
        name=name,
        description=description or "No description",
        canonical_url=repo.get("html_url", ""),
        type=infer_type(name, description, " ".join(topics)),
        source_id=source_id,
        author=(repo.get("owner") or {}).get("login"),
        star_count=repo.get("stargazers_count", 0),
        last_updated=repo.get("updated_at"),
        tags=list(topics),
    )


class GitHubTopicSource(ArtifactSource):
    """One search query per topic, merged, deduplicated and sorted by stars."""

    def __init__(
        self,
        id: str,
        name: str,
        topics: list[str],
        fetcher: ContentFetcher,
        min_stars: int = 0,
        description: str = "",
        per_page: int = 50,
    ):
        super().__init__(id, name, description)
        self.topics = list(topics)
        self.fetcher = fetcher
        self.min_stars = min_stars
        self.per_page = per_page

    def query_for(self, topic: str) -> str:
        query = f"topic:{topic}"
        if self.min_stars > 0:
            query += f" stars:>={self.min_stars}"
        return query

    async def search_topic(self, topic: str) -> list[MarketplaceArtifact]:
        data = await self.fetcher.get_json(
            SEARCH_API_URL,
            params={"q": self.query_for(topic), "sort": "stars", "order": "desc", "per_page": self.per_page},
        )
        items = data.get("items", []) if isinstance(data, dict) else []
        return [repo_to_artifact(repo, self.id) for repo in items if repo.get("html_url")]

    async def _fetch(self) -> list[MarketplaceArtifact]:
        collected: list[MarketplaceArtifact] = []
        last_error: InstallError | None = None
        failures = 0

        for topic in self.topics:
            try:
                collected.extend(await self.search_topic(topic))
            except InstallError as e:
                logger.warning("%s: search failed for topic %s: %s", self.id, topic, e.message)
                last_error = e
                failures += 1

        if self.topics and failures == len(self.topics) and last_error is not None:
            raise last_error

        seen: set[str] = set()
        unique: list[MarketplaceArtifact] = []
        for artifact in collected:
            if artifact.canonical_url in seen:
                continue
            seen.add(artifact.canonical_url)
            unique.append(artifact)

        unique.sort(key=lambda a: a.star_count or 0, reverse=True)
        logger.info("%s: found %d repositories", self.id, len(unique))
        return unique
