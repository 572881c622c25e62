"""
Validation Result Models

Validators never fix input; they report issues for the user to correct.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field that has the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (missing, invalid_value, duplicate, ...)"
    )
    message: str = Field(
        ...,
        description="Human-readable description"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested correction"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one form submission."""

    subject: str = Field(
        ...,
        description="What was validated (registration, payment)"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
