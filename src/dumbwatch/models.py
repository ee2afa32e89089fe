"""Data models used throughout dumbwatch."""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .errors import MalformedRecord


@dataclass
class ReportRecord:
    """A user-submitted report eligible for clustering."""
    id: str
    text: str
    vector: list[float]
    recorded_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ReportRecord":
        """Parse a raw event-store row.

        Raises MalformedRecord if the id, text or embedding is missing or unusable.
        """
        session_id = row.get("session_id")
        if not isinstance(session_id, str) or not session_id:
            raise MalformedRecord(f"missing session_id: {session_id!r}")

        text = row.get("quick_report_text")
        if not isinstance(text, str) or not text.strip():
            raise MalformedRecord(f"{session_id}: missing report text")

        return cls(
            id=session_id,
            text=text,
            vector=_parse_vector(session_id, row.get("embedding")),
            recorded_at=_parse_timestamp(row.get("timestamp")),
        )

    @property
    def dimensions(self) -> int:
        return len(self.vector)


@dataclass
class ClusterCandidate:
    """Records grouped by the cluster builder, in discovery order."""
    member_ids: list[str] = field(default_factory=list)
    texts: list[str] = field(default_factory=list)

    def add(self, record: ReportRecord) -> None:
        self.member_ids.append(record.id)
        self.texts.append(record.text)

    def __len__(self) -> int:
        return len(self.member_ids)


@dataclass
class Cluster:
    """A labeled group of at least two similar reports."""
    cluster_id: str
    member_ids: list[str]
    representative_texts: list[str]
    summary: str
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def report_count(self) -> int:
        return len(self.member_ids)

    def to_row(self) -> dict[str, Any]:
        """Row shape appended to the clusters datasource."""
        return {
            "processed_at": self.processed_at.isoformat(),
            "cluster_id": self.cluster_id,
            "cluster_summary": self.summary,
            "representative_texts": list(self.representative_texts),
            "report_count": self.report_count,
        }


@dataclass
class RunResult:
    """Outcome of one clustering pass."""
    events_processed: int
    clusters_created: int
    message: str = ""
    clusters: list[Cluster] = field(default_factory=list)


def _parse_vector(session_id: str, raw: Any) -> list[float]:
    # Tinybird returns arrays natively, some exports hand back a JSON string
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedRecord(f"{session_id}: embedding is not valid JSON") from e

    if not isinstance(raw, (list, tuple)) or len(raw) == 0:
        raise MalformedRecord(f"{session_id}: embedding is missing or empty")

    vector = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedRecord(f"{session_id}: embedding has non-numeric value {value!r}")
        if not math.isfinite(value):
            raise MalformedRecord(f"{session_id}: embedding has non-finite value")
        vector.append(float(value))
    return vector


def _parse_timestamp(raw: Any) -> datetime | None:
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
