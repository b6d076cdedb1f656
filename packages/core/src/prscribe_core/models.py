"""Artifacts exchanged between pipeline stages.

The generated records (PrSummary, PrReview) double as the output schema sent
to the model: field descriptions end up in ``model_json_schema()`` and guide
the model's JSON, and ``model_validate`` rejects anything that does not fit.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class PrDetails(BaseModel):
    """Identifying facts about the pull request, fetched once per run."""

    model_config = ConfigDict(frozen=True)

    branch_name: str
    title: str
    description: str = ""
    commit_messages: str = ""


class TicketInfo(BaseModel):
    """Context from the linked tracker ticket. Empty when not applicable."""

    model_config = ConfigDict(frozen=True)

    summary: str = ""
    description: str = ""

    @property
    def has_context(self) -> bool:
        return bool(self.summary and self.description)


class DiffPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    diff: str
    was_truncated: bool = False
    original_length: int = 0


class PrType(str, Enum):
    FEATURE = "Feature"
    BUGFIX = "Bugfix"
    REFACTOR = "Refactor"
    TEST = "Test"
    DOCUMENTATION = "Documentation"
    CHORE = "Chore"
    STYLE = "Style"


class FileChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_name: str = Field(description="The full path of the file that was changed.")
    summary: str = Field(description="A concise summary of the change made in this file.")


class ChangeGroups(BaseModel):
    model_config = ConfigDict(frozen=True)

    enhancements: Optional[list[FileChange]] = Field(
        default=None, description="Significant enhancements or new features added/modified."
    )
    tests: Optional[list[FileChange]] = Field(default=None, description="Test files added or modified.")
    config: Optional[list[FileChange]] = Field(
        default=None, description="Configuration changes (e.g. dependencies, settings, CI/CD)."
    )
    bugfixes: Optional[list[FileChange]] = Field(default=None, description="Specific bug fixes implemented.")


class PrSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    pr_type: PrType = Field(description="The primary classification that best describes the overall nature of the PR.")
    description: list[str] = Field(
        min_length=1,
        max_length=5,
        description="1-5 bullet points summarising the most significant changes. Focus on what changed and why.",
    )
    changes: ChangeGroups = Field(
        default_factory=ChangeGroups,
        description="A categorised summary of specific changes made in different files within the PR.",
    )


class ReviewEffort(str, Enum):
    TRIVIAL = "Trivial"
    MINOR = "Minor"
    MODERATE = "Moderate"
    SIGNIFICANT = "Significant"
    COMPLEX = "Complex"


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFO = "Info"


class FeedbackPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str = Field(description="Clear description of the issue or suggestion.")
    file_path: str = Field(description="The relevant file path.")
    line_reference: Optional[str] = Field(
        default=None, description='Approximate line number(s) or range, e.g. "line 42" or "lines 50-55".'
    )
    severity: Optional[Severity] = Field(default=None, description="Estimated severity or importance.")
    suggested_code_change: Optional[str] = Field(
        default=None, description="A small code snippet showing the suggested fix."
    )


class PrReview(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall_assessment: str = Field(description="A brief (1-2 sentence) high-level assessment.")
    review_effort: ReviewEffort = Field(description="Estimated effort required to review this pull request's diff.")
    review_effort_reasoning: Optional[str] = Field(
        default=None, description="Brief justification for the chosen review effort level."
    )
    feedback_points: list[FeedbackPoint] = Field(
        default_factory=list,
        max_length=10,
        description="Specific feedback points or suggestions ordered by severity.",
    )
    security_concerns: list[str] = Field(
        default_factory=list, description="Identified security concerns, or empty if none."
    )
    test_coverage_assessment: Optional[str] = Field(default=None, description="Comment on test coverage.")


class PublishResult(BaseModel):
    """Outcome of a publication stage."""

    model_config = ConfigDict(frozen=True)

    action: Literal["created", "edited", "updated", "skipped"]
    comment_id: Optional[int] = None

    @property
    def published(self) -> bool:
        return self.action != "skipped"
