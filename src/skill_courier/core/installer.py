"""Smart install pipeline: parse, retrieve, reclassify, relocate, record."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from skill_courier.config import Settings
from skill_courier.core.classifier import classify
from skill_courier.core.fetcher import ContentFetcher
from skill_courier.core.git import GitClient
from skill_courier.core.parser import parse_input
from skill_courier.core.strategies import STRATEGIES, Retrieved, Strategy, copy_artifact, remove_path
from skill_courier.errors import (
    AlreadyExists,
    FailureReason,
    InstallError,
    InvalidJson,
    NoWorkspaceOpen,
    PathNotFound,
    Unparseable,
)
from skill_courier.models import (
    ArtifactDescriptor,
    ArtifactType,
    ExportBundle,
    ExportedArtifact,
    InstallManifest,
    InstallOutcome,
    InstallRecord,
    RetrievalKind,
    Scope,
    is_valid_name,
)

logger = logging.getLogger("skill-courier.installer")


def load_manifest(path: Path) -> InstallManifest:
    """Load a scope's install manifest (empty if missing or unreadable)."""
    if path.exists():
        try:
            return InstallManifest.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Failed to load manifest %s: %s", path, e)
    return InstallManifest()


def save_manifest(path: Path, manifest: InstallManifest) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")


def _existing_variant(path: Path) -> Path | None:
    """The path itself, or a sibling file "<name>.<ext>", if either exists."""
    if path.exists():
        return path
    if path.parent.is_dir():
        for sibling in path.parent.glob(f"{path.name}.*"):
            if sibling.is_file():
                return sibling
    return None


def _missing_dirs(path: Path) -> list[Path]:
    """Ancestors of path that do not exist yet, deepest first."""
    missing: list[Path] = []
    for parent in path.parents:
        if parent.exists():
            break
        missing.append(parent)
    return missing


def _prune_empty(dirs: list[Path]) -> None:
    """Remove directories an attempt created, deepest first, while they are empty."""
    for directory in sorted(set(dirs), key=lambda p: len(p.parts), reverse=True):
        if directory.is_dir() and not any(directory.iterdir()):
            try:
                directory.rmdir()
            except OSError as e:
                logger.warning("Could not remove %s: %s", directory, e)


class SmartInstaller:
    """Installs artifacts into the user or project scope.

    Collaborators are passed in so tests can swap the HTTP transport, the git
    client or whole strategies for fakes.
    """

    def __init__(
        self,
        settings: Settings,
        fetcher: ContentFetcher | None = None,
        git: GitClient | None = None,
        strategies: dict[RetrievalKind, Strategy] | None = None,
    ):
        self.settings = settings
        self.fetcher = fetcher or ContentFetcher.from_settings(settings)
        self.git = git or GitClient(settings.git_path, settings.clone_timeout)
        self.strategies = strategies or STRATEGIES

    async def install_input(self, text: str, scope: Scope | str) -> InstallOutcome:
        """Parse free-form input and install it."""
        descriptor = parse_input(text)
        if descriptor is None:
            error = Unparseable(f"Could not parse install target: {text.strip()!r}")
            return InstallOutcome(success=False, error_message=error.message, reason=error.reason)
        return await self.install(descriptor, scope, source=text.strip())

    async def install(
        self, descriptor: ArtifactDescriptor, scope: Scope | str, source: str = ""
    ) -> InstallOutcome:
        """Install one descriptor.

        Pipeline:
        1. Provisional destination from the descriptor's type hint
        2. Retrieve with the kind's strategy
        3. Reclassify from content
        4. Move under the right container if the type changed
        5. Record in the scope manifest

        Failures come back as an outcome with a reason; nothing that was
        written on the way is left behind.
        """
        scope = Scope(scope)
        name = descriptor.proposed_name
        logger.info("Installing %s (%s) to %s", name, descriptor.retrieval_kind.value, scope.value)

        written: Path | None = None
        fresh_dirs: list[Path] = []
        try:
            root = self.settings.scope_root(scope)
            provisional = self.settings.destination(root, descriptor.proposed_type, name)
            fresh_dirs = _missing_dirs(provisional)
            if _existing_variant(provisional) is not None:
                raise AlreadyExists(f"{name} already exists in {scope.value}")

            strategy = self.strategies[descriptor.retrieval_kind]
            retrieved: Retrieved = await strategy(
                descriptor, provisional, fetcher=self.fetcher, git=self.git
            )
            written = retrieved.path

            actual_type = classify(written, written.is_dir())
            final_path = written
            if actual_type is not descriptor.proposed_type:
                logger.info(
                    "Content analysis detected type as '%s' (was '%s')",
                    actual_type.value,
                    descriptor.proposed_type.value,
                )
                final_path = await self._relocate(written, root, actual_type, name, scope, fresh_dirs)

            written = None
            self._record(root, final_path, actual_type, descriptor, retrieved, source)
            logger.info("Installed '%s' -> %s", name, final_path)
            return InstallOutcome(
                success=True, name=name, artifact_type=actual_type, final_path=str(final_path)
            )

        except InstallError as e:
            logger.error("Install failed for '%s': %s", name, e.message)
            return InstallOutcome(
                success=False, name=name, error_message=e.message, reason=e.reason
            )
        except OSError as e:
            logger.error("Install failed for '%s': %s", name, e)
            return InstallOutcome(
                success=False, name=name, error_message=str(e), reason=FailureReason.FILESYSTEM_ERROR
            )
        finally:
            if written is not None:
                remove_path(written)
            _prune_empty(fresh_dirs)

    async def _relocate(
        self,
        written: Path,
        root: Path,
        actual_type: ArtifactType,
        name: str,
        scope: Scope,
        fresh_dirs: list[Path],
    ) -> Path:
        suffix = "" if written.is_dir() else written.suffix
        correct = self.settings.destination(root, actual_type, name + suffix)
        if _existing_variant(self.settings.destination(root, actual_type, name)) is not None:
            raise AlreadyExists(f"{name} already exists in {scope.value} as {actual_type.value}")

        fresh_dirs.extend(_missing_dirs(correct))
        correct.parent.mkdir(parents=True, exist_ok=True)
        # Concurrent installs are not coordinated: re-check right before moving
        if correct.exists():
            raise AlreadyExists(f"{name} already exists in {scope.value} as {actual_type.value}")
        await asyncio.to_thread(written.rename, correct)
        logger.info("Moved to correct directory: %s", correct)
        return correct

    def _record(
        self,
        root: Path,
        final_path: Path,
        actual_type: ArtifactType,
        descriptor: ArtifactDescriptor,
        retrieved: Retrieved,
        source: str,
    ) -> None:
        manifest_path = self.settings.manifest_path(root)
        relative = final_path.relative_to(root).as_posix()
        manifest = load_manifest(manifest_path)
        manifest.artifacts[relative] = InstallRecord(
            name=descriptor.proposed_name,
            type=actual_type,
            path=relative,
            source=source or descriptor.raw_content_url or descriptor.repository_url,
            repository_url=descriptor.repository_url,
            branch=descriptor.branch,
            commit_sha=retrieved.commit_sha,
            installed_at=datetime.now(timezone.utc).isoformat(),
        )
        try:
            save_manifest(manifest_path, manifest)
        except OSError as e:
            # The artifact itself is installed; only the record is missing
            logger.warning("Failed to save manifest %s: %s", manifest_path, e)

    def _locate_installed(
        self, root: Path, artifact_type: ArtifactType, name: str, scope: Scope
    ) -> Path:
        """Find an installed artifact directly inside its type's container."""
        if not is_valid_name(name):
            raise Unparseable(f"Invalid artifact name: {name!r}")
        container = root / artifact_type.container
        target = _existing_variant(container / name)
        if target is None:
            raise PathNotFound(f"{artifact_type.value} '{name}' not found in {scope.value}")
        if target.parent.resolve() != container.resolve():
            raise PathNotFound(f"{artifact_type.value} '{name}' is outside {container}")
        return target

    async def uninstall(
        self, name: str, artifact_type: ArtifactType | str, scope: Scope | str
    ) -> InstallOutcome:
        """Remove an installed artifact (directory or single file) and its record."""
        scope = Scope(scope)
        artifact_type = ArtifactType(artifact_type)
        try:
            root = self.settings.scope_root(scope)
            target = self._locate_installed(root, artifact_type, name, scope)

            await asyncio.to_thread(remove_path, target)

            manifest_path = self.settings.manifest_path(root)
            manifest = load_manifest(manifest_path)
            if manifest.artifacts.pop(target.relative_to(root).as_posix(), None) is not None:
                save_manifest(manifest_path, manifest)

            logger.info("Uninstalled '%s' from %s", name, target)
            return InstallOutcome(
                success=True, name=name, artifact_type=artifact_type, final_path=str(target)
            )
        except InstallError as e:
            return InstallOutcome(success=False, name=name, error_message=e.message, reason=e.reason)
        except OSError as e:
            return InstallOutcome(
                success=False, name=name, error_message=str(e), reason=FailureReason.FILESYSTEM_ERROR
            )

    async def move(
        self,
        name: str,
        artifact_type: ArtifactType | str,
        from_scope: Scope | str,
        to_scope: Scope | str,
        keep_source: bool = False,
    ) -> InstallOutcome:
        """Move an installed artifact to the other scope (copy with keep_source).

        The source is deleted only once the copy is complete, and its manifest
        record follows it. A failed copy leaves both scopes as they were.
        """
        artifact_type = ArtifactType(artifact_type)
        from_scope, to_scope = Scope(from_scope), Scope(to_scope)
        fresh_dirs: list[Path] = []
        try:
            src_root = self.settings.scope_root(from_scope)
            dst_root = self.settings.scope_root(to_scope)
            source = self._locate_installed(src_root, artifact_type, name, from_scope)
            if from_scope is to_scope:
                raise AlreadyExists(f"{name} is already in {to_scope.value}")
            if _existing_variant(self.settings.destination(dst_root, artifact_type, name)) is not None:
                raise AlreadyExists(f"{name} already exists in {to_scope.value} as {artifact_type.value}")

            target = self.settings.destination(dst_root, artifact_type, source.name)
            fresh_dirs = _missing_dirs(target)
            target = await asyncio.to_thread(copy_artifact, source, target)
            if not keep_source:
                await asyncio.to_thread(remove_path, source)
            self._transfer_record(src_root, source, dst_root, target, keep_source)

            logger.info("%s '%s' to %s", "Copied" if keep_source else "Moved", name, target)
            return InstallOutcome(
                success=True, name=name, artifact_type=artifact_type, final_path=str(target)
            )
        except InstallError as e:
            logger.error("Move failed for '%s': %s", name, e.message)
            return InstallOutcome(success=False, name=name, error_message=e.message, reason=e.reason)
        except OSError as e:
            logger.error("Move failed for '%s': %s", name, e)
            return InstallOutcome(
                success=False, name=name, error_message=str(e), reason=FailureReason.FILESYSTEM_ERROR
            )
        finally:
            _prune_empty(fresh_dirs)

    def _transfer_record(
        self, src_root: Path, source: Path, dst_root: Path, target: Path, keep_source: bool
    ) -> None:
        src_manifest_path = self.settings.manifest_path(src_root)
        src_manifest = load_manifest(src_manifest_path)
        key = source.relative_to(src_root).as_posix()
        record = src_manifest.artifacts.get(key)
        if record is None:
            return

        new_key = target.relative_to(dst_root).as_posix()
        dst_manifest_path = self.settings.manifest_path(dst_root)
        dst_manifest = load_manifest(dst_manifest_path)
        dst_manifest.artifacts[new_key] = record.model_copy(update={"path": new_key})
        try:
            save_manifest(dst_manifest_path, dst_manifest)
            if not keep_source:
                del src_manifest.artifacts[key]
                save_manifest(src_manifest_path, src_manifest)
        except OSError as e:
            # The files are already in place; only the records are stale
            logger.warning("Failed to update manifests for %s: %s", new_key, e)

    def installed(self, scope: Scope | str) -> list[InstallRecord]:
        """Records of artifacts installed in a scope that are still on disk."""
        root = self.settings.scope_root(scope)
        manifest = load_manifest(self.settings.manifest_path(root))
        return [r for r in manifest.artifacts.values() if (root / r.path).exists()]

    # ─── Export / import ───────────────────────────────────────────────────

    def export(self, scopes: tuple[Scope | str, ...] = (Scope.USER, Scope.PROJECT)) -> ExportBundle:
        """Collect installed artifacts with their sources; scopes without a root are skipped."""
        artifacts: list[ExportedArtifact] = []
        for scope in map(Scope, scopes):
            try:
                records = self.installed(scope)
            except NoWorkspaceOpen:
                logger.info("Skipping %s scope: no project root", scope.value)
                continue
            artifacts.extend(
                ExportedArtifact(name=r.name, type=r.type, scope=scope, source=r.source, path=r.path)
                for r in records
            )
        return ExportBundle(exported_at=datetime.now(timezone.utc).isoformat(), artifacts=artifacts)

    def export_manifest(
        self, path: Path, scopes: tuple[Scope | str, ...] = (Scope.USER, Scope.PROJECT)
    ) -> ExportBundle:
        bundle = self.export(scopes)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(bundle.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Exported %d artifacts to %s", len(bundle.artifacts), path)
        return bundle

    async def import_manifest(self, path: Path) -> list[InstallOutcome]:
        """Re-install every exported artifact from its recorded source.

        Entries without a source are skipped. Each install keeps the exported
        name, type and scope.
        """
        path = Path(path)
        try:
            bundle = ExportBundle.model_validate_json(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise PathNotFound(f"Cannot read export file {path}: {e}") from e
        except ValueError as e:
            raise InvalidJson(f"Invalid export file {path}: {e}") from e

        outcomes: list[InstallOutcome] = []
        for item in bundle.artifacts:
            if not item.source:
                logger.info("Skipping '%s': no recorded source", item.name)
                continue
            descriptor = parse_input(item.source)
            if descriptor is None:
                error = Unparseable(f"Could not parse install target: {item.source!r}")
                outcomes.append(
                    InstallOutcome(success=False, name=item.name, error_message=error.message, reason=error.reason)
                )
                continue
            if is_valid_name(item.name):
                descriptor = descriptor.model_copy(update={"proposed_name": item.name, "proposed_type": item.type})
            outcomes.append(await self.install(descriptor, item.scope, source=item.source))
        return outcomes
