"""Greedy similarity clustering of recent user reports."""

import logging
import random
import string
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

from ..errors import MalformedRecord
from ..models import Cluster, ClusterCandidate, ReportRecord, RunResult
from ..storage import EventStoreBase, get_event_store
from .similarity import cosine_similarity
from .summarizer import summarize

logger = logging.getLogger(__name__)

NOT_ENOUGH_REPORTS = "Not enough events with embeddings to cluster"
COMPLETED = "Clustering completed successfully"


def build_clusters(
    records: Sequence[ReportRecord],
    threshold: float,
    min_cluster_size: int = 2,
) -> list[ClusterCandidate]:
    """Group records with a single greedy pass.

    Each unprocessed record seeds a group and pulls in every other unprocessed
    record whose similarity to the seed is above `threshold`. Groups are never
    merged afterwards, so the result depends on input order. Groups smaller than
    `min_cluster_size` are dropped, and their seeds are not reconsidered.
    """
    min_cluster_size = max(2, min_cluster_size)
    processed: set[str] = set()
    groups: list[ClusterCandidate] = []

    for record in records:
        if record.id in processed:
            continue

        group = ClusterCandidate()
        group.add(record)
        processed.add(record.id)

        for other in records:
            if other.id in processed or other.id == record.id:
                continue
            if cosine_similarity(record.vector, other.vector) > threshold:
                group.add(other)
                processed.add(other.id)

        if len(group) >= min_cluster_size:
            groups.append(group)

    return groups


def new_cluster_id(now: datetime) -> str:
    """cluster_<epoch millis>_<9 random base36 chars>."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"cluster_{int(now.timestamp() * 1000)}_{suffix}"


def parse_records(rows: list[dict[str, Any]], min_text_length: int = 10) -> list[ReportRecord]:
    """Turn store rows into eligible ReportRecords, dropping the ones that aren't.

    Drops malformed rows, short texts, repeated ids and vectors whose dimensionality
    differs from the most common one in the batch.
    """
    records: list[ReportRecord] = []
    seen: set[str] = set()
    for row in rows:
        try:
            record = ReportRecord.from_row(row)
        except MalformedRecord as e:
            logger.warning(f"Skipping malformed report row: {e}")
            continue
        if len(record.text.strip()) <= min_text_length:
            logger.debug(f"Skipping {record.id}: report text too short")
            continue
        if record.id in seen:
            logger.debug(f"Skipping duplicate report {record.id}")
            continue
        seen.add(record.id)
        records.append(record)

    if not records:
        return records

    dims = Counter(r.dimensions for r in records)
    expected, _ = dims.most_common(1)[0]
    if len(dims) > 1:
        dropped = [r.id for r in records if r.dimensions != expected]
        logger.warning(
            f"Dropping {len(dropped)} report(s) whose embedding is not {expected}-dimensional: "
            f"{', '.join(dropped[:5])}"
        )
        records = [r for r in records if r.dimensions == expected]
    return records


def run_clustering(
    config: dict[str, Any],
    store: EventStoreBase | None = None,
    now: datetime | None = None,
) -> RunResult:
    """Run one clustering pass over the recent report window.

    Raises ConfigurationError when the store isn't configured and
    UpstreamUnavailable when it can't be queried or written to.
    """
    cluster_cfg = config.get("clustering", {})
    threshold = float(cluster_cfg.get("threshold", 0.7))
    window_hours = cluster_cfg.get("window_hours", 24)
    max_records = cluster_cfg.get("max_records", 1000)
    min_text_length = cluster_cfg.get("min_text_length", 10)
    max_texts = cluster_cfg.get("max_representative_texts", 5)
    min_cluster_size = cluster_cfg.get("min_cluster_size", 2)

    now = now or datetime.now(timezone.utc)
    owns_store = store is None
    if owns_store:
        store = get_event_store(config)

    try:
        since = now - timedelta(hours=window_hours)
        logger.info(f"Fetching reports since {since.isoformat()} (limit {max_records})")
        rows = store.fetch_recent_reports(since, limit=max_records, min_text_length=min_text_length)
        records = parse_records(rows, min_text_length=min_text_length)
        logger.info(f"Fetched {len(rows)} row(s), {len(records)} eligible for clustering")

        if len(records) < 2:
            return RunResult(events_processed=len(records), clusters_created=0, message=NOT_ENOUGH_REPORTS)

        candidates = build_clusters(records, threshold, min_cluster_size=min_cluster_size)
        logger.info(f"Built {len(candidates)} cluster(s) at threshold {threshold}")

        clusters = [
            Cluster(
                cluster_id=new_cluster_id(now),
                member_ids=list(c.member_ids),
                representative_texts=c.texts[:max_texts],
                summary=summarize(c.texts),
                processed_at=now,
            )
            for c in candidates
        ]

        if clusters:
            store.append_clusters([c.to_row() for c in clusters])
    finally:
        if owns_store:
            store.close()

    return RunResult(
        events_processed=len(records),
        clusters_created=len(clusters),
        message=COMPLETED,
        clusters=clusters,
    )
