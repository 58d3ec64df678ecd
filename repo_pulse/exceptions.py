"""Exceptions raised by repo_pulse."""


class PulseError(Exception):
    """Base class for repo_pulse errors."""


class NotAGitRepositoryError(PulseError):
    """The given path is not a git checkout."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Not a valid git repository: {path}")


class RemoteClientError(PulseError):
    """A remote client call failed in a way that is not an empty result."""
