"""Tinybird event store backend.

Reads go through the SQL endpoint (/v0/sql), writes through the Events API
(/v0/events) as NDJSON.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from ..errors import ConfigurationError, UpstreamUnavailable
from .base import EventStoreBase

logger = logging.getLogger(__name__)


def _sql_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S")


class TinybirdEventStore(EventStoreBase):
    """Tinybird-backed event store."""

    def __init__(
        self,
        token: str | None,
        base_url: str = "https://api.tinybird.co",
        events_datasource: str = "llm_events",
        clusters_datasource: str = "report_clusters",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        if not token:
            raise ConfigurationError(
                "Tinybird token required. Set TINYBIRD_TOKEN or tinybird.token in config."
            )
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.events_datasource = events_datasource
        self.clusters_datasource = clusters_datasource
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _query(self, sql: str) -> list[dict[str, Any]]:
        """Run a SQL query and return the `data` rows."""
        try:
            response = self.client.get(
                "/v0/sql",
                params={"q": f"{sql.strip()} FORMAT JSON"},
                headers=self._auth_headers(),
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"Tinybird query timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailable(
                f"Tinybird query failed: {e.response.status_code} {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Tinybird query failed: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailable("Tinybird returned a non-JSON response") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("data") or [], list):
            raise UpstreamUnavailable("Tinybird returned an unexpected response")
        return payload.get("data") or []

    def _append(self, datasource: str, rows: list[dict[str, Any]]) -> None:
        """Send rows to the Events API as NDJSON."""
        if not rows:
            return

        body = "\n".join(json.dumps(row) for row in rows)
        try:
            response = self.client.post(
                "/v0/events",
                params={"name": datasource},
                content=body.encode(),
                headers={**self._auth_headers(), "Content-Type": "application/x-ndjson"},
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"Tinybird ingestion timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailable(
                f"Tinybird ingestion into {datasource} failed: "
                f"{e.response.status_code} {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Tinybird ingestion into {datasource} failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        quarantined = payload.get("quarantined_rows", 0) if isinstance(payload, dict) else 0
        if quarantined:
            logger.warning(f"Tinybird quarantined {quarantined} row(s) sent to {datasource}")

    def fetch_recent_reports(
        self,
        since: datetime,
        limit: int = 1000,
        min_text_length: int = 10,
    ) -> list[dict[str, Any]]:
        sql = f"""
        SELECT
            session_id,
            timestamp,
            model_name,
            quick_report_text,
            embedding
        FROM {self.events_datasource}
        WHERE timestamp >= toDateTime('{_sql_timestamp(since)}', 'UTC')
          AND notEmpty(embedding)
          AND length(quick_report_text) > {int(min_text_length)}
        ORDER BY timestamp DESC
        LIMIT {int(limit)}
        """
        return self._query(sql)

    def append_clusters(self, rows: list[dict[str, Any]]) -> None:
        self._append(self.clusters_datasource, rows)
        logger.info(f"Sent {len(rows)} cluster(s) to {self.clusters_datasource}")

    def recent_clusters(self, since: datetime, limit: int = 20) -> list[dict[str, Any]]:
        sql = f"""
        SELECT
            processed_at,
            cluster_id,
            cluster_summary,
            representative_texts,
            report_count
        FROM {self.clusters_datasource}
        WHERE processed_at >= toDateTime('{_sql_timestamp(since)}', 'UTC')
        ORDER BY processed_at DESC, report_count DESC
        LIMIT {int(limit)}
        """
        return self._query(sql)

    def ingest_event(self, event: dict[str, Any]) -> None:
        self._append(self.events_datasource, [event])
