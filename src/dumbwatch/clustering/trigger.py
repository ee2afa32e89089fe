"""Entry points that start a clustering pass on behalf of another caller."""

import logging
import threading
from typing import Any

from ..errors import ConfigurationError, UpstreamUnavailable
from ..storage import EventStoreBase
from .cluster import run_clustering

logger = logging.getLogger(__name__)


def clustering_response(
    config: dict[str, Any],
    store: EventStoreBase | None = None,
) -> tuple[dict[str, Any], int]:
    """Run a pass and render the JSON payload and status code of the trigger endpoint."""
    try:
        result = run_clustering(config, store=store)
    except ConfigurationError as e:
        logger.error(f"Clustering is not configured: {e}")
        return {"success": False, "error": str(e)}, 500
    except UpstreamUnavailable as e:
        logger.error(f"Error in clustering process: {e}")
        return {"success": False, "error": "Internal server error during clustering"}, 500

    payload = {
        "success": True,
        "message": result.message,
        "events_processed": result.events_processed,
        "clusters_created": result.clusters_created,
    }
    return payload, 200


def _run_quietly(config: dict[str, Any], store: EventStoreBase | None) -> None:
    try:
        result = run_clustering(config, store=store)
        logger.info(f"Background clustering created {result.clusters_created} cluster(s)")
    except Exception as e:
        # Never surfaces to whoever kicked off the run
        logger.warning(f"Background clustering failed: {e}")


def trigger_clustering_in_background(
    config: dict[str, Any],
    store: EventStoreBase | None = None,
) -> threading.Thread:
    """Start a clustering pass in a daemon thread and return immediately."""
    thread = threading.Thread(
        target=_run_quietly,
        args=(config, store),
        name="dumbwatch-clustering",
        daemon=True,
    )
    thread.start()
    return thread
