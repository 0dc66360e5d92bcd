"""git subprocess calls, always with explicit argument lists."""

import asyncio
import logging
from pathlib import Path

from skill_courier.errors import GitError, NetworkError

logger = logging.getLogger("skill-courier.git")


class GitClient:
    """Minimal async git client: shallow clone and HEAD lookup."""

    def __init__(self, git_path: str = "git", timeout: float = 120.0):
        self.git_path = git_path
        self.timeout = timeout

    async def _run(self, *args: str, cwd: Path | None = None) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                self.git_path,
                *args,
                cwd=str(cwd) if cwd else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise NetworkError(f"git executable not found: {self.git_path}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise NetworkError(f"git {args[0]} timed out after {self.timeout:.0f}s") from e

        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip() or stdout.decode(errors="replace").strip()
            raise GitError(f"git {args[0]} failed (rc={process.returncode}): {message}")
        return stdout.decode(errors="replace")

    async def clone(self, url: str, dest: Path, branch: str | None = None) -> None:
        """Shallow-clone url into dest, pinned to branch when given."""
        args = ["clone", "--depth", "1"]
        if branch:
            args += ["--branch", branch]
        args += ["--", url, str(dest)]
        await self._run(*args)
        logger.info("Cloned: %s (branch: %s)", url, branch or "default")

    async def head_commit(self, repo_dir: Path) -> str | None:
        try:
            output = await self._run("rev-parse", "HEAD", cwd=repo_dir)
        except NetworkError as e:
            logger.debug("rev-parse failed in %s: %s", repo_dir, e)
            return None
        return output.strip() or None
