"""Error types raised by the release pipeline.

A missing remote file is not modelled here: the collaborator raises the
builtin ``FileNotFoundError`` and callers treat it as "nothing to update".
"""

from __future__ import annotations


class ReleaseTrainError(Exception):
    """Base class for every error raised by release-train."""


class ConfigurationError(ReleaseTrainError):
    """The configuration or repository layout cannot be used.

    Fatal to the whole run.
    """

    def __init__(self, message: str, release_type: str | None = None, path: str | None = None):
        self.release_type = release_type
        self.path = path
        prefix = ""
        if release_type or path:
            prefix = f"{release_type or 'unknown'} ({path or '.'}): "
        super().__init__(f"{prefix}{message}")


class MissingRequiredFileError(ConfigurationError):
    """A strategy's mandatory input file does not exist."""

    def __init__(self, file: str, release_type: str, path: str):
        self.file = file
        super().__init__(f"missing required file: {file}", release_type, path)


class PathValidationError(ReleaseTrainError):
    """A configured file path tries to leave the repository."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"illegal path: {path!r}")


class GitHubAPIError(ReleaseTrainError):
    """A remote call failed."""

    def __init__(self, message: str, status: int | None = None, *, network: bool = False):
        self.status = status
        self.network = network
        super().__init__(message)

    @property
    def transient(self) -> bool:
        """Whether retrying the same call may succeed."""
        if self.network:
            return True
        return self.status is not None and (self.status == 429 or self.status >= 500)


class DuplicateReleaseError(GitHubAPIError):
    """A release for this tag already exists."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"release {tag} already exists", status=422)

    @property
    def transient(self) -> bool:
        return False


class AggregateError(ReleaseTrainError):
    """Several independent mutations failed.

    Raised only after every mutation in the batch was attempted.
    """

    def __init__(self, errors: list[Exception]):
        self.errors = errors
        lines = "\n".join(f"  - {error}" for error in errors)
        super().__init__(f"{len(errors)} operation(s) failed:\n{lines}")
