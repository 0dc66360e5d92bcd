"""Data models for skill-courier."""

import re
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from skill_courier.errors import FailureReason

_NAME_RE = re.compile(r"^[a-z0-9_-]+$")


def is_valid_name(name: str) -> bool:
    """True for lowercase names made of letters, digits, "-" and "_"."""
    return _NAME_RE.fullmatch(name) is not None


class ArtifactType(str, Enum):
    SKILL = "skill"
    AGENT = "agent"
    COMMAND = "command"
    PLUGIN = "plugin"

    @property
    def container(self) -> str:
        """Directory under a scope root holding artifacts of this type."""
        return f"{self.value}s"


class RetrievalKind(str, Enum):
    FILE = "file"  # GitHub blob view, fetched through its raw URL
    RAW = "raw"
    FOLDER = "folder"
    REPO = "repo"
    GIST = "gist"


class Scope(str, Enum):
    USER = "user"
    PROJECT = "project"


class ArtifactDescriptor(BaseModel):
    """Parsed, structured form of a raw install target."""

    model_config = {"frozen": True}

    retrieval_kind: RetrievalKind
    repository_url: str = ""
    branch: str = ""
    sub_path: str = ""
    raw_content_url: str = ""
    gist_id: str = ""
    owner_hint: str = ""
    repo_name: str = ""
    proposed_name: str
    proposed_type: ArtifactType = ArtifactType.SKILL  # hint only, see classifier

    @model_validator(mode="after")
    def _check_location(self) -> "ArtifactDescriptor":
        location = {
            RetrievalKind.FILE: self.raw_content_url,
            RetrievalKind.RAW: self.raw_content_url,
            RetrievalKind.FOLDER: self.repository_url,
            RetrievalKind.REPO: self.repository_url,
            RetrievalKind.GIST: self.gist_id,
        }[self.retrieval_kind]
        if not location:
            raise ValueError(f"{self.retrieval_kind.value} descriptor has no location")
        if not _NAME_RE.match(self.proposed_name):
            raise ValueError(f"Invalid artifact name: {self.proposed_name!r}")
        return self


class InstallOutcome(BaseModel):
    """Result of one install (or uninstall) attempt."""

    success: bool
    name: str = ""
    artifact_type: ArtifactType | None = None
    final_path: str | None = None
    error_message: str | None = None
    reason: FailureReason | None = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "InstallOutcome":
        if self.success and (not self.final_path or self.error_message):
            raise ValueError("successful outcome needs final_path and no error")
        if not self.success and (self.final_path or not self.error_message):
            raise ValueError("failed outcome needs error_message and no final_path")
        return self


class MarketplaceArtifact(BaseModel):
    """An artifact listed by a marketplace source."""

    name: str
    description: str = ""
    canonical_url: str
    type: ArtifactType = ArtifactType.SKILL
    source_id: str = ""
    author: str | None = None
    star_count: int | None = None
    last_updated: str | None = None
    tags: list[str] = Field(default_factory=list)


class SourceInfo(BaseModel):
    id: str
    name: str
    count: int = 0
    enabled: bool = True


class SourceError(BaseModel):
    source_id: str
    source_name: str
    error: str


class AggregatedResult(BaseModel):
    """Unified marketplace listing across all sources."""

    artifacts: list[MarketplaceArtifact] = Field(default_factory=list)
    sources: list[SourceInfo] = Field(default_factory=list)
    errors: list[SourceError] = Field(default_factory=list)

    @property
    def per_source_counts(self) -> dict[str, int]:
        return {s.id: s.count for s in self.sources}


class InstallRecord(BaseModel):
    """Where an installed artifact came from."""

    name: str
    type: ArtifactType
    path: str  # relative to the scope root
    source: str = ""
    repository_url: str = ""
    branch: str = ""
    commit_sha: str | None = None
    installed_at: str = ""  # ISO timestamp


class InstallManifest(BaseModel):
    """Per-scope manifest of installed artifacts, keyed by relative path."""

    version: str = "1.0.0"
    artifacts: dict[str, InstallRecord] = Field(default_factory=dict)


class UpdateInfo(BaseModel):
    """Commit comparison for one installed artifact."""

    name: str
    path: str = ""
    repository_url: str = ""
    current_commit: str | None = None
    latest_commit: str | None = None
    has_update: bool = False
    error: str | None = None


class ExportedArtifact(BaseModel):
    name: str
    type: ArtifactType
    scope: Scope
    source: str = ""
    path: str = ""


class ExportBundle(BaseModel):
    """Installed artifacts of one or more scopes, re-installable from their sources."""

    version: int = 1
    exported_at: str = ""
    artifacts: list[ExportedArtifact] = Field(default_factory=list)
