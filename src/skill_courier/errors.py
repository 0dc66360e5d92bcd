"""Typed failure reasons for the install pipeline."""

from enum import Enum


class FailureReason(str, Enum):
    UNPARSEABLE = "unparseable"
    ALREADY_EXISTS = "already_exists"
    PATH_NOT_FOUND = "path_not_found"
    UNEXPECTED_CONTENT = "unexpected_content"
    EMPTY_GIST = "empty_gist"
    NETWORK_ERROR = "network_error"
    INVALID_JSON = "invalid_json"
    NO_WORKSPACE_OPEN = "no_workspace_open"
    FILESYSTEM_ERROR = "filesystem_error"


class InstallError(Exception):
    """Base class for every failure the installer reports to the user."""

    reason: FailureReason = FailureReason.FILESYSTEM_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unparseable(InstallError):
    reason = FailureReason.UNPARSEABLE


class AlreadyExists(InstallError):
    reason = FailureReason.ALREADY_EXISTS


class PathNotFound(InstallError):
    reason = FailureReason.PATH_NOT_FOUND


class UnexpectedContent(InstallError):
    reason = FailureReason.UNEXPECTED_CONTENT


class EmptyGist(InstallError):
    reason = FailureReason.EMPTY_GIST


class NetworkError(InstallError):
    reason = FailureReason.NETWORK_ERROR


class GitError(NetworkError):
    """git exited non-zero (unknown branch, missing repo, ...)."""


class InvalidJson(InstallError):
    reason = FailureReason.INVALID_JSON


class NoWorkspaceOpen(InstallError):
    reason = FailureReason.NO_WORKSPACE_OPEN
