"""Source that scrapes an awesome-list style markdown document."""

import logging
import re

from skill_courier.core.fetcher import ContentFetcher
from skill_courier.models import MarketplaceArtifact
from skill_courier.sources.base import ArtifactSource, infer_type

logger = logging.getLogger("skill-courier.sources.awesome")

_TABLE_HEADER = re.compile(r"^\s*\|.*\b(name|skill)\b", re.IGNORECASE)
_TABLE_SEPARATOR = re.compile(r"^\s*\|[\s:|-]+\|\s*$")
_LINK = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")
# "- [Name](URL) - Description" or "[Name](URL) Description"
_LIST_ITEM = re.compile(r"^\s*(?:[-*+]\s+)?\[([^\]]+)\]\(([^)\s]+)\)\s*[-–—:]?\s*(.*)$")
_GITHUB_OWNER = re.compile(r"github\.com/([^/?#]+)", re.IGNORECASE)


def _make_artifact(name: str, url: str, description: str, source_id: str) -> MarketplaceArtifact | None:
    name, url, description = name.strip(), url.strip(), description.strip()
    if not name or not url or name.startswith("!"):
        return None
    if not url.startswith(("http://", "https://")):
        return None  # in-page anchors, relative links

    owner = _GITHUB_OWNER.search(url)
    return MarketplaceArtifact(
        name=name,
        description=description,
        canonical_url=url,
        type=infer_type(name, url, description),
        source_id=source_id,
        author=owner.group(1) if owner else None,
    )


def parse_awesome_markdown(content: str, source_id: str) -> list[MarketplaceArtifact]:
    """Extract listings from markdown tables and link lists.

    Tables need a header row with a Name (or Skill) column; the first cell of
    each row must hold a markdown link, the second is the description.
    """
    artifacts: list[MarketplaceArtifact] = []
    in_table = False

    for line in content.splitlines():
        stripped = line.strip()

        if not in_table and _TABLE_HEADER.match(line) and not _LINK.search(line):
            in_table = True
            continue

        if in_table:
            if _TABLE_SEPARATOR.match(line):
                continue
            if stripped.startswith("|"):
                cells = [c.strip() for c in stripped.strip("|").split("|")]
                link = _LINK.search(cells[0]) if cells else None
                if link:
                    description = cells[1] if len(cells) > 1 else ""
                    artifact = _make_artifact(link.group(1), link.group(2), description, source_id)
                    if artifact:
                        artifacts.append(artifact)
                continue
            in_table = False

        match = _LIST_ITEM.match(line)
        if match:
            artifact = _make_artifact(match.group(1), match.group(2), match.group(3), source_id)
            if artifact:
                artifacts.append(artifact)

    artifacts.sort(key=lambda a: a.name.lower())
    return artifacts


class AwesomeListSource(ArtifactSource):
    def __init__(
        self,
        id: str,
        name: str,
        url: str,
        fetcher: ContentFetcher,
        description: str = "",
    ):
        super().__init__(id, name, description)
        self.url = url
        self.fetcher = fetcher

    async def _fetch(self) -> list[MarketplaceArtifact]:
        content = await self.fetcher.get_text(self.url)
        artifacts = parse_awesome_markdown(content, self.id)
        logger.info("%s: parsed %d artifacts from %s", self.id, len(artifacts), self.url)
        return artifacts
