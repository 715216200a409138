# src/auditor/model.py
from typing import Optional, List, Literal, Any, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

Severity = Literal["error", "warning", "info"]
ConfidenceLevel = Literal["HIGH", "MEDIUM", "LOW"]


class Confidence(BaseModel):
    """How sure an analyzer is about one finding, and why."""
    model_config = ConfigDict(frozen=True)

    level: ConfidenceLevel
    score: float = Field(ge=0.0, le=1.0)
    reason: str = ""
    scope: str = "workspace"


class IssueLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    file: str = ""
    line: int = 0
    column: int = 0
    element: str = ""  # e.g. '<button> element with id="save"'


class IssueFix(BaseModel):
    """A suggested correction. Never applied by the engine itself."""
    model_config = ConfigDict(frozen=True)

    description: str
    attribute: Optional[str] = None
    value: Optional[str] = None
    selector: Optional[str] = None
    snippet: Optional[str] = None


class Issue(BaseModel):
    """
    Data model representing a single accessibility finding.
    The message always names the exact missing piece.
    """
    model_config = ConfigDict(frozen=True)

    kind: str  # e.g. 'missing-aria-reference', 'incomplete-tablist-keyboard'
    severity: Severity
    wcag_criteria: List[str] = Field(default_factory=list)
    location: IssueLocation = Field(default_factory=IssueLocation)
    message: str
    confidence: Confidence
    fix: Optional[IssueFix] = None
    analyzer: str = ""
    related_locations: List[IssueLocation] = Field(default_factory=list)

    @field_validator('severity', mode='before')
    @classmethod
    def normalize_severity(cls, v: Any) -> str:
        return str(v).strip().lower()

    @property
    def sort_key(self) -> Tuple[str, int, int, str, str, str]:
        """Total order used for every issue list the engine returns."""
        return (self.location.file, self.location.line, self.location.column,
                self.kind, self.analyzer, self.message)
