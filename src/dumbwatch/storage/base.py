"""Abstract base class for event stores and factory function."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from ..errors import ConfigurationError


class EventStoreBase(ABC):
    """Common interface for the managed analytics backends holding report events."""

    @abstractmethod
    def fetch_recent_reports(
        self,
        since: datetime,
        limit: int = 1000,
        min_text_length: int = 10,
    ) -> list[dict[str, Any]]:
        """Report events recorded at or after `since` that carry an embedding.

        Rows have keys: session_id, timestamp, model_name, quick_report_text, embedding.
        Newest first, at most `limit` rows, text longer than `min_text_length`."""

    @abstractmethod
    def append_clusters(self, rows: list[dict[str, Any]]) -> None:
        """Append a batch of cluster rows to the clusters datasource."""

    @abstractmethod
    def recent_clusters(self, since: datetime, limit: int = 20) -> list[dict[str, Any]]:
        """Cluster rows processed at or after `since`, newest first."""

    @abstractmethod
    def ingest_event(self, event: dict[str, Any]) -> None:
        """Append one report event to the events datasource."""

    def close(self) -> None:
        """Release network resources. Backends without any keep the default."""


def get_event_store(config: dict[str, Any]) -> EventStoreBase:
    """Factory: return the right event store based on config."""
    backend = config.get("storage_backend", "tinybird")
    timeout = config.get("store", {}).get("timeout_seconds", 10.0)

    if backend == "tinybird":
        from .tinybird import TinybirdEventStore
        tb_cfg = config.get("tinybird", {})
        return TinybirdEventStore(
            token=tb_cfg.get("token"),
            base_url=tb_cfg.get("base_url", "https://api.tinybird.co"),
            events_datasource=tb_cfg.get("events_datasource", "llm_events"),
            clusters_datasource=tb_cfg.get("clusters_datasource", "report_clusters"),
            timeout=timeout,
        )
    elif backend == "bigquery":
        from .bigquery import BigQueryEventStore
        bq_cfg = config.get("bigquery", {})
        return BigQueryEventStore(
            project=bq_cfg.get("project"),
            dataset=bq_cfg.get("dataset", "dumbwatch"),
            events_table=bq_cfg.get("events_table", "llm_events"),
            clusters_table=bq_cfg.get("clusters_table", "report_clusters"),
            timeout=timeout,
        )
    else:
        raise ConfigurationError(f"Unknown storage_backend: {backend}")
