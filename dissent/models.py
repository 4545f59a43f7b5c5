"""Domain types for Dissent.

Boundary and durable types are pydantic models so that records read from a
store and JSON returned by the judge are validated on the way in:

- ``KnowledgeRecord`` / ``Topic`` — read-only inputs from the record store.
  Accept both snake_case and the camelCase keys written by the capture side.
- ``Conflict`` — the durable record owned by the ledger.
- ``Judgment`` — the structured verdict parsed from the judge's reply.

``Candidate`` is a plain dataclass: it only lives inside one scan and is built
in the hot loop of candidate discovery.
"""

from __future__ import annotations

import datetime
import enum
import uuid
from dataclasses import dataclass, field
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

_UTC = datetime.timezone.utc
_EPOCH_FLOOR = datetime.datetime.min.replace(tzinfo=_UTC)

ConflictKey = tuple[str, str, str, str]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(_UTC)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ConflictType(str, enum.Enum):
    DECISION = "decision_conflict"
    INSIGHT = "insight_conflict"
    APPROACH = "approach_conflict"
    FACT = "fact_conflict"


class Severity(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ConflictStatus(str, enum.Enum):
    OPEN = "open"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class Resolution(str, enum.Enum):
    KEEP_NEWER = "keep_newer"
    KEEP_OLDER = "keep_older"
    KEEP_BOTH = "keep_both"
    CUSTOM = "custom"


# Sort rank used by the open-conflicts listing (high first)
SEVERITY_RANK: dict[Severity, int] = {
    Severity.HIGH: 0,
    Severity.MEDIUM: 1,
    Severity.LOW: 2,
}


# ---------------------------------------------------------------------------
# Read-only inputs
# ---------------------------------------------------------------------------


class KnowledgeRecord(BaseModel):
    """A distilled knowledge record (title, decisions, insights, tags)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    topic_id: str | None = Field(default=None, validation_alias=AliasChoices("topic_id", "topicId"))
    title: str = ""
    summary_text: str = Field(
        default="",
        validation_alias=AliasChoices("summary_text", "summaryText", "summary"),
    )
    decisions: list[str] = Field(default_factory=list)
    key_insights: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("key_insights", "keyInsights"),
    )
    tags: list[str] = Field(default_factory=list)
    created_at: datetime.datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("created_at", "createdAt"),
    )

    @field_validator("title", "summary_text", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("decisions", "key_insights", "tags", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime.datetime | None) -> datetime.datetime | None:
        # Mixed naive/aware timestamps cannot be compared; treat naive as UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=_UTC)
        return value

    @property
    def sort_key(self) -> datetime.datetime:
        """Chronological ordering key. Missing timestamps sort first."""
        return self.created_at or _EPOCH_FLOOR


class Topic(BaseModel):
    """A topic grouping records. Only its tags matter here."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


# ---------------------------------------------------------------------------
# Ephemeral candidate
# ---------------------------------------------------------------------------


@dataclass
class Candidate:
    """An unverified, heuristically scored pair of fragments."""

    older_record_id: str
    newer_record_id: str
    older_topic_id: str | None
    newer_topic_id: str | None
    older_content: str
    newer_content: str
    signals: list[str] = field(default_factory=list)
    heuristic_score: float = 0.0

    @property
    def key(self) -> ConflictKey:
        return (self.older_record_id, self.newer_record_id, self.older_content, self.newer_content)


# ---------------------------------------------------------------------------
# Durable conflict
# ---------------------------------------------------------------------------


class ConflictMetadata(BaseModel):
    model_used: str | None = None
    provider_used: str | None = None
    confidence_score: float = Field(ge=0.0, le=1.0)
    heuristic_score: float = Field(ge=0.0, le=1.0)
    tokens_used: int = 0
    signals: list[str] = Field(default_factory=list)


class Conflict(BaseModel):
    """A confirmed contradiction between two knowledge fragments.

    Identity for deduplication is ``key`` — the (older record, newer record,
    older content, newer content) tuple — not ``id``.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: ConflictType = ConflictType.APPROACH
    severity: Severity = Severity.MEDIUM
    status: ConflictStatus = ConflictStatus.OPEN

    older_record_id: str
    newer_record_id: str
    older_topic_id: str | None = None
    newer_topic_id: str | None = None

    older_content: str
    newer_content: str

    analysis: str = ""
    recommendation: str = ""

    resolved_at: datetime.datetime | None = None
    resolution: Resolution | None = None
    resolution_note: str | None = None

    detected_at: datetime.datetime = Field(default_factory=utcnow)
    metadata: ConflictMetadata

    @model_validator(mode="after")
    def _open_has_no_resolution(self) -> "Conflict":
        if self.status == ConflictStatus.OPEN and (
            self.resolved_at is not None or self.resolution is not None
        ):
            raise ValueError("an open conflict cannot carry resolved_at or resolution")
        return self

    @property
    def key(self) -> ConflictKey:
        return (self.older_record_id, self.newer_record_id, self.older_content, self.newer_content)


class ConflictStats(BaseModel):
    total: int = 0
    open: int = 0
    resolved: int = 0
    dismissed: int = 0
    high_severity: int = 0
    medium_severity: int = 0
    low_severity: int = 0


class ScanResult(BaseModel):
    """Outcome of a full scan.

    ``found`` counts candidates that passed the heuristic threshold;
    ``verified`` counts conflicts actually persisted by this run.
    """

    found: int = 0
    verified: int = 0
    conflicts: list[Conflict] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Judge verdict
# ---------------------------------------------------------------------------


class Judgment(BaseModel):
    """Structured verdict returned by the judgment service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_conflict: bool = Field(default=False, validation_alias=AliasChoices("is_conflict", "isConflict"))
    type: ConflictType = ConflictType.APPROACH
    severity: Severity = Severity.MEDIUM
    analysis: str = ""
    recommendation: str = ""
    confidence_score: float = Field(
        default=0.0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("confidence_score", "confidenceScore"),
    )

    @field_validator("type", mode="before")
    @classmethod
    def _default_type(cls, value: Any) -> Any:
        valid = {member.value for member in ConflictType}
        return value if value in valid else ConflictType.APPROACH

    @field_validator("severity", mode="before")
    @classmethod
    def _default_severity(cls, value: Any) -> Any:
        valid = {member.value for member in Severity}
        return value if value in valid else Severity.MEDIUM

    @field_validator("analysis", "recommendation", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else str(value)

    @field_validator("confidence_score")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return max(0.0, min(1.0, value))
