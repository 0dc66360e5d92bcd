"""Update checks: compare an installed commit against the branch head on GitHub."""

import logging
import re

from skill_courier.core.fetcher import ContentFetcher
from skill_courier.errors import InstallError
from skill_courier.models import InstallRecord, UpdateInfo

logger = logging.getLogger("skill-courier.updates")

_GITHUB_REPO = re.compile(r"github\.com[/:]([^/]+)/([^/]+?)(?:\.git)?/?$", re.IGNORECASE)

COMMITS_API_URL = "https://api.github.com/repos/{owner}/{repo}/commits"


class UpdateChecker:
    def __init__(self, fetcher: ContentFetcher):
        self.fetcher = fetcher

    async def latest_commit(self, owner: str, repo: str, branch: str = "") -> str | None:
        params = {"per_page": 1}
        if branch:
            params["sha"] = branch
        commits = await self.fetcher.get_json(
            COMMITS_API_URL.format(owner=owner, repo=repo), params=params
        )
        if isinstance(commits, list) and commits:
            return commits[0].get("sha")
        return None

    async def check(self, record: InstallRecord) -> UpdateInfo:
        """Compare one record's commit with the latest one.

        Errors are reported on the result rather than raised. Without a
        recorded commit there is nothing to compare, so has_update stays False.
        """
        info = UpdateInfo(
            name=record.name,
            path=record.path,
            repository_url=record.repository_url,
            current_commit=record.commit_sha,
        )
        if not record.repository_url:
            info.error = "No repository URL found"
            return info

        match = _GITHUB_REPO.search(record.repository_url)
        if not match:
            info.error = "Not a GitHub repository"
            return info

        owner, repo = match.groups()
        try:
            info.latest_commit = await self.latest_commit(owner, repo, record.branch)
        except InstallError as e:
            logger.warning("Update check failed for '%s': %s", record.name, e.message)
            info.error = e.message
            return info

        if info.current_commit and info.latest_commit:
            info.has_update = info.current_commit != info.latest_commit
        return info

    async def check_all(self, records: list[InstallRecord]) -> list[UpdateInfo]:
        results: list[UpdateInfo] = []
        for record in records:
            results.append(await self.check(record))
        return results
