"""Configuration for skill-courier."""

from pathlib import Path

from pydantic_settings import BaseSettings

from skill_courier.errors import NoWorkspaceOpen
from skill_courier.models import ArtifactType, Scope


class Settings(BaseSettings):
    """Skill-courier configuration loaded from environment and .env file."""

    # Install roots (user-global and project-relative)
    global_skills_path: str = "~/.claude"
    project_skills_path: str = "./.claude"
    project_root: Path | None = None

    # HTTP
    user_agent: str = "skill-courier"
    http_timeout: float = 120.0
    max_redirects: int = 5

    # Git
    git_path: str = "git"
    clone_timeout: float = 120.0

    # Marketplace
    cache_ttl: float = 300.0  # 5 minutes per source
    awesome_list_url: str = (
        "https://raw.githubusercontent.com/ComposioHQ/awesome-claude-skills/master/README.md"
    )
    custom_sources: list[str] = []
    topic_min_stars: int = 0

    # Authentication token (loaded from env / .env, NEVER committed)
    github_token: str = ""

    # Per-scope record of installed artifacts
    manifest_file: str = ".skill-courier.json"

    model_config = {"env_prefix": "SKILL_COURIER_", "env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def get(self, key: str) -> str:
        """Read a setting as a string ("" when unset)."""
        value = getattr(self, key, None)
        return "" if value is None else str(value)

    def scope_root(self, scope: Scope | str) -> Path:
        """Return the install root for a scope.

        Raises NoWorkspaceOpen for the project scope when no project root is set.
        """
        scope = Scope(scope)
        if scope is Scope.USER:
            return Path(self.global_skills_path or "~/.claude").expanduser()

        if self.project_root is None:
            raise NoWorkspaceOpen("No workspace open: project scope needs a project root")
        return Path(self.project_root).expanduser() / (self.project_skills_path or "./.claude")

    @staticmethod
    def destination(root: Path, artifact_type: ArtifactType, name: str) -> Path:
        """Return root/{skills|agents|commands|plugins}/name."""
        return root / ArtifactType(artifact_type).container / name

    def manifest_path(self, root: Path) -> Path:
        return root / self.manifest_file


settings = Settings()
