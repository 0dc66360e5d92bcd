"""Turn loosely specified install targets into artifact descriptors.

Recognised inputs, first match wins:
    gist:<id>
    https://gist.github.com/<user>/<id>
    https://raw.githubusercontent.com/<owner>/<repo>/<branch>/<path>
    https://github.com/<owner>/<repo>/blob/<branch>/<path>
    https://github.com/<owner>/<repo>/tree/<branch>[/<path>]
    https://github.com/<owner>/<repo>
    <owner>/<repo>[/<path>]

Anything else parses to None; free-form input is expected to miss often.
"""

import hashlib
import logging
import posixpath
import re

from skill_courier.models import ArtifactDescriptor, ArtifactType, RetrievalKind

logger = logging.getLogger("skill-courier.parser")

_GIST_URL = re.compile(r"^https?://gist\.github\.com/([^/]+)/([a-f0-9]+)", re.IGNORECASE)
_RAW_URL = re.compile(
    r"^https?://raw\.githubusercontent\.com/([^/]+)/([^/]+)/([^/]+)/(.+)$", re.IGNORECASE
)
_BLOB_URL = re.compile(r"^https?://github\.com/([^/]+)/([^/]+)/blob/([^/]+)/(.+)$", re.IGNORECASE)
_TREE_URL = re.compile(
    r"^https?://github\.com/([^/]+)/([^/]+)/tree/([^/]+)(?:/(.+?))?/?$", re.IGNORECASE
)
_REPO_URL = re.compile(r"^https?://github\.com/([^/]+)/([^/]+?)/?$", re.IGNORECASE)
_SHORTHAND = re.compile(r"^([a-zA-Z0-9_-]+)/([a-zA-Z0-9_.-]+)(?:/(.+))?$")
_SHORTHAND_PREFIX = re.compile(r"^[a-zA-Z0-9_-]+/[a-zA-Z0-9_.-]+")

# Files that mark a multi-file bundle rather than a standalone artifact
_BUNDLE_MARKERS = ("SKILL.md", "agent.md")

DEFAULT_BRANCH = "main"


def is_valid_input(text: str) -> bool:
    """Cheap pre-check before offering the parse/install flow."""
    text = text.strip()
    if text.startswith("gist:"):
        return True
    if text.startswith(("http://", "https://")):
        return True
    return bool(_SHORTHAND_PREFIX.match(text))


def sanitize_name(segment: str) -> str:
    """Filesystem-safe identifier from a path segment.

    "PDF Tools.md" -> "pdf-tools". Never returns an empty string: input that
    sanitizes to nothing becomes "artifact-<8 hex chars of its sha1>".
    """
    stem, _ = posixpath.splitext(segment)
    name = re.sub(r"[^a-zA-Z0-9_-]+", "-", stem or segment)
    name = re.sub(r"-+", "-", name).strip("-").lower()
    if not name:
        digest = hashlib.sha1(segment.encode("utf-8")).hexdigest()[:8]
        name = f"artifact-{digest}"
    return name


def detect_type_hint(path: str) -> ArtifactType:
    """Initial type guess from a URL path; the classifier has the final word."""
    lower = path.lower()
    if "plugin" in lower:
        return ArtifactType.PLUGIN
    if "agent" in lower:  # also covers "subagent"
        return ArtifactType.AGENT
    if "command" in lower:
        return ArtifactType.COMMAND
    return ArtifactType.SKILL


def _repo_url(owner: str, repo: str) -> str:
    return f"https://github.com/{owner}/{repo}.git"


def _strip_git(repo: str) -> str:
    return repo[:-4] if repo.lower().endswith(".git") else repo


def _gist(gist_id: str, owner: str = "") -> ArtifactDescriptor:
    return ArtifactDescriptor(
        retrieval_kind=RetrievalKind.GIST,
        gist_id=gist_id,
        owner_hint=owner,
        proposed_name=sanitize_name(f"gist-{gist_id[:8]}"),
    )


def _folder(owner: str, repo: str, branch: str, sub_path: str) -> ArtifactDescriptor:
    sub_path = sub_path.strip("/")
    segment = posixpath.basename(sub_path) if sub_path else repo
    return ArtifactDescriptor(
        retrieval_kind=RetrievalKind.FOLDER,
        repository_url=_repo_url(owner, repo),
        branch=branch,
        sub_path=sub_path,
        owner_hint=owner,
        repo_name=repo,
        # no extension stripping for directories ("v1.2" stays "v1-2")
        proposed_name=sanitize_name(segment.replace(".", "-")),
        proposed_type=detect_type_hint(sub_path),
    )


def _repo(owner: str, repo: str) -> ArtifactDescriptor:
    return ArtifactDescriptor(
        retrieval_kind=RetrievalKind.REPO,
        repository_url=_repo_url(owner, repo),
        owner_hint=owner,
        repo_name=repo,
        proposed_name=sanitize_name(repo.replace(".", "-")),
    )


def parse_input(text: str) -> ArtifactDescriptor | None:
    """Parse a raw install target, or return None when nothing matches."""
    text = text.strip()
    logger.debug("Parsing input: %s", text)
    if not text:
        return None

    if text.startswith("gist:"):
        gist_id = text[len("gist:"):].strip()
        return _gist(gist_id) if gist_id else None

    match = _GIST_URL.match(text)
    if match:
        return _gist(match.group(2), owner=match.group(1))

    match = _RAW_URL.match(text)
    if match:
        owner, repo, branch, file_path = match.groups()
        return ArtifactDescriptor(
            retrieval_kind=RetrievalKind.RAW,
            raw_content_url=text,
            branch=branch,
            sub_path=file_path,
            owner_hint=owner,
            repo_name=repo,
            proposed_name=sanitize_name(posixpath.basename(file_path)),
            proposed_type=detect_type_hint(file_path),
        )

    match = _BLOB_URL.match(text)
    if match:
        owner, repo, branch, file_path = match.groups()
        repo = _strip_git(repo)
        if posixpath.basename(file_path) in _BUNDLE_MARKERS:
            # The marker names a bundle: fetch its whole directory instead
            descriptor = _folder(owner, repo, branch, posixpath.dirname(file_path))
            return descriptor.model_copy(update={"proposed_type": detect_type_hint(file_path)})
        return ArtifactDescriptor(
            retrieval_kind=RetrievalKind.FILE,
            repository_url=_repo_url(owner, repo),
            branch=branch,
            sub_path=file_path,
            raw_content_url=f"https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{file_path}",
            owner_hint=owner,
            repo_name=repo,
            proposed_name=sanitize_name(posixpath.basename(file_path)),
            proposed_type=detect_type_hint(file_path),
        )

    match = _TREE_URL.match(text)
    if match:
        owner, repo, branch, sub_path = match.groups()
        return _folder(owner, _strip_git(repo), branch, sub_path or "")

    match = _REPO_URL.match(text)
    if match:
        owner, repo = match.groups()
        return _repo(owner, _strip_git(repo))

    if "://" not in text:
        match = _SHORTHAND.match(text)
        if match:
            owner, repo, sub_path = match.groups()
            repo = _strip_git(repo)
            if sub_path and sub_path.strip("/"):
                return _folder(owner, repo, DEFAULT_BRANCH, sub_path)
            return _repo(owner, repo)

    logger.debug("Could not parse input: %s", text)
    return None
