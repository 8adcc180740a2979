"""Error types shared across the pipeline."""

from __future__ import annotations


class SitebookError(Exception):
    pass


class ConfigurationError(SitebookError):
    """Invalid settings or an unusable output location. Nothing to clean up."""


class AcquisitionError(SitebookError):
    """The retrieval stage failed; partial downloads must be cleaned up."""


class CommandFailed(AcquisitionError):
    def __init__(self, argv: list[str], returncode: int):
        self.argv = list(argv)
        self.returncode = returncode
        super().__init__(f"{argv[0]} exited with status {returncode}")


class DeadlineExceeded(AcquisitionError):
    pass


class Interrupted(AcquisitionError):
    pass


class NoDocumentsError(SitebookError):
    pass


class RenderError(SitebookError):
    pass
