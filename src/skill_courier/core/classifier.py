"""Authoritative artifact type detection from downloaded content."""

import logging
from pathlib import Path
from typing import NamedTuple

from skill_courier.models import ArtifactType

logger = logging.getLogger("skill-courier.classifier")


class Markers(NamedTuple):
    """Which capabilities a directory advertises."""

    skill: bool
    agent: bool
    command: bool


# (skill, agent, command) -> type. Two or more markers make a plugin bundle.
DECISION_TABLE: dict[Markers, ArtifactType] = {
    Markers(False, False, False): ArtifactType.SKILL,
    Markers(True, False, False): ArtifactType.SKILL,
    Markers(False, True, False): ArtifactType.AGENT,
    Markers(False, False, True): ArtifactType.COMMAND,
    Markers(True, True, False): ArtifactType.PLUGIN,
    Markers(True, False, True): ArtifactType.PLUGIN,
    Markers(False, True, True): ArtifactType.PLUGIN,
    Markers(True, True, True): ArtifactType.PLUGIN,
}

_SKILL_DIRS = {"skills"}
_AGENT_DIRS = {"agents", "subagent", "subagents"}
_COMMAND_DIRS = {"commands"}


def classify_filename(filename: str) -> ArtifactType:
    lower = filename.lower()
    if "agent" in lower:  # also covers "subagent"
        return ArtifactType.AGENT
    if "command" in lower:
        return ArtifactType.COMMAND
    if "plugin" in lower:
        return ArtifactType.PLUGIN
    return ArtifactType.SKILL


def scan_markers(directory: Path) -> Markers:
    """Look at the direct entries of a directory for type indicators.

    A subdirectory named after the type (skills/, agents/, commands/) or a
    file whose name contains the keyword (SKILL.md, my-agent.md, ...) counts.
    """
    skill = agent = command = False
    for entry in directory.iterdir():
        lower = entry.name.lower()
        if entry.is_dir():
            skill = skill or lower in _SKILL_DIRS
            agent = agent or lower in _AGENT_DIRS
            command = command or lower in _COMMAND_DIRS
        elif entry.is_file():
            skill = skill or "skill" in lower
            agent = agent or "agent" in lower
            command = command or "command" in lower
    return Markers(skill, agent, command)


def classify(path: Path, is_directory: bool | None = None) -> ArtifactType:
    """Return the artifact type of a materialized file or directory."""
    path = Path(path)
    if is_directory is None:
        is_directory = path.is_dir()

    if not is_directory:
        return classify_filename(path.name)

    markers = scan_markers(path)
    artifact_type = DECISION_TABLE[markers]
    logger.debug("Markers for %s: %s -> %s", path, markers, artifact_type.value)
    return artifact_type
