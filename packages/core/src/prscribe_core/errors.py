"""Exception hierarchy shared by the pipeline and its collaborators.

Every failure that aborts a run derives from PrscribeError so the CLI can
report it without catching unrelated exceptions. Diff header parse problems
are not represented: the diff engine recovers from them in place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prscribe_core.workflow.engine import WorkflowRun


class PrscribeError(Exception):
    """Base class for all prscribe errors."""


class ConfigurationError(PrscribeError):
    """A required option is missing or invalid. Raised before any stage runs."""


class ExternalServiceError(PrscribeError):
    """A GitHub, Jira or model call failed or returned a non-success status."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service


class ValidationError(PrscribeError):
    """Model or stage output does not match the declared shape."""


class MissingArtifactError(PrscribeError):
    """A stage asked the workflow state for an artifact no earlier stage wrote."""

    def __init__(self, key: str):
        super().__init__(f"Artifact {key!r} not found in workflow state.")
        self.key = key


class StageFailedError(PrscribeError):
    """A stage raised; the run was aborted at that stage.

    ``run`` holds the partial trace so callers can see which stages completed
    (and which publications already happened) before the failure.
    """

    def __init__(self, stage_id: str, cause: BaseException, run: WorkflowRun | None = None):
        super().__init__(f"Stage {stage_id!r} failed: {cause}")
        self.stage_id = stage_id
        self.cause = cause
        self.run = run
