"""BigQuery event store backend.

All GCP imports are lazy. This module is only loaded when storage_backend=bigquery.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from ..errors import ConfigurationError, UpstreamUnavailable
from .base import EventStoreBase

logger = logging.getLogger(__name__)


def _get_bq_client(project: str):
    from google.cloud import bigquery
    return bigquery.Client(project=project)


@contextmanager
def _google_errors(action: str):
    """Translate client library failures into the store's error types.

    Credential problems become ConfigurationError. API, transport and
    timeout failures become UpstreamUnavailable.
    """
    from google.api_core.exceptions import GoogleAPIError
    from google.auth.exceptions import GoogleAuthError, TransportError
    from requests.exceptions import RequestException

    try:
        yield
    except TransportError as e:
        raise UpstreamUnavailable(f"{action} failed: {e}") from e
    except GoogleAuthError as e:
        raise ConfigurationError(f"BigQuery credentials unavailable: {e}") from e
    except (GoogleAPIError, RequestException, TimeoutError) as e:
        raise UpstreamUnavailable(f"{action} failed: {e}") from e


class BigQueryEventStore(EventStoreBase):
    """BigQuery-backed event store, events and clusters in two tables of one dataset."""

    def __init__(
        self,
        project: str | None,
        dataset: str,
        events_table: str = "llm_events",
        clusters_table: str = "report_clusters",
        timeout: float = 10.0,
        client=None,
    ):
        if not project:
            raise ConfigurationError("BigQuery project required. Set bigquery.project in config.")
        self.project = project
        self.dataset = dataset
        self.events_table = f"{project}.{dataset}.{events_table}"
        self.clusters_table = f"{project}.{dataset}.{clusters_table}"
        self.timeout = timeout
        self._client = client
        self._clusters_table_ready = False

    @property
    def client(self):
        if self._client is None:
            self._client = _get_bq_client(self.project)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _ensure_clusters_table(self):
        """Create the clusters table if it doesn't exist."""
        if self._clusters_table_ready:
            return
        from google.cloud import bigquery

        schema = [
            bigquery.SchemaField("processed_at", "TIMESTAMP", mode="REQUIRED"),
            bigquery.SchemaField("cluster_id", "STRING", mode="REQUIRED"),
            bigquery.SchemaField("cluster_summary", "STRING"),
            bigquery.SchemaField("representative_texts", "STRING", mode="REPEATED"),
            bigquery.SchemaField("report_count", "INT64"),
        ]
        table_ref = bigquery.Table(self.clusters_table, schema=schema)
        self.client.create_table(table_ref, exists_ok=True, timeout=self.timeout)
        self._clusters_table_ready = True

    def _query(self, sql: str, params: list) -> list[dict[str, Any]]:
        from google.cloud.bigquery import QueryJobConfig

        job_config = QueryJobConfig(query_parameters=params)
        with _google_errors("BigQuery query"):
            result = self.client.query(sql, job_config=job_config).result(timeout=self.timeout)
            return [dict(row.items()) for row in result]

    def _insert(self, table: str, rows: list[dict[str, Any]]) -> None:
        with _google_errors(f"BigQuery insert into {table}"):
            errors = self.client.insert_rows_json(table, rows, timeout=self.timeout)
        if errors:
            raise UpstreamUnavailable(f"BigQuery insert errors: {errors}")

    def fetch_recent_reports(
        self,
        since: datetime,
        limit: int = 1000,
        min_text_length: int = 10,
    ) -> list[dict[str, Any]]:
        from google.cloud.bigquery import ScalarQueryParameter

        sql = f"""
        SELECT session_id, timestamp, model_name, quick_report_text, embedding
        FROM `{self.events_table}`
        WHERE timestamp >= @since
          AND ARRAY_LENGTH(embedding) > 0
          AND LENGTH(quick_report_text) > @min_len
        ORDER BY timestamp DESC
        LIMIT @limit
        """
        return self._query(sql, [
            ScalarQueryParameter("since", "TIMESTAMP", since),
            ScalarQueryParameter("min_len", "INT64", int(min_text_length)),
            ScalarQueryParameter("limit", "INT64", int(limit)),
        ])

    def append_clusters(self, rows: list[dict[str, Any]]) -> None:
        if not rows:
            return
        with _google_errors("BigQuery table setup"):
            self._ensure_clusters_table()

        # Insert in batches of 500
        for batch_start in range(0, len(rows), 500):
            self._insert(self.clusters_table, rows[batch_start:batch_start + 500])
        logger.info(f"Inserted {len(rows)} cluster(s) into {self.clusters_table}")

    def recent_clusters(self, since: datetime, limit: int = 20) -> list[dict[str, Any]]:
        from google.cloud.bigquery import ScalarQueryParameter

        sql = f"""
        SELECT processed_at, cluster_id, cluster_summary, representative_texts, report_count
        FROM `{self.clusters_table}`
        WHERE processed_at >= @since
        ORDER BY processed_at DESC, report_count DESC
        LIMIT @limit
        """
        return self._query(sql, [
            ScalarQueryParameter("since", "TIMESTAMP", since),
            ScalarQueryParameter("limit", "INT64", int(limit)),
        ])

    def ingest_event(self, event: dict[str, Any]) -> None:
        self._insert(self.events_table, [event])
