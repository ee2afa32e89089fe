"""Record quick reports and kick off clustering behind them."""

import logging
from datetime import datetime, timezone
from typing import Any

from .clustering.trigger import trigger_clustering_in_background
from .embeddings.provider import EmbeddingProvider
from .storage import EventStoreBase, get_event_store

logger = logging.getLogger(__name__)

ENTRY_PATHS = ("search_tab", "overview_tab")


def record_report(
    config: dict[str, Any],
    session_id: str,
    model_name: str,
    text: str | None = None,
    entry_path: str = "search_tab",
    store: EventStoreBase | None = None,
    provider: EmbeddingProvider | None = None,
    trigger: bool = True,
) -> dict[str, Any]:
    """Embed and store a quick report, then start a background clustering pass.

    Args:
        config: Application config.
        session_id: Anonymous session token identifying the report.
        model_name: The model being reported on.
        text: Optional free-text description of the issue.
        entry_path: UI entry point, search_tab or overview_tab.
        store: Event store to write to; built from config when omitted.
        provider: Embedding provider; built from config when omitted.
        trigger: Whether to start clustering after an eligible report.

    Returns:
        The event as sent to the store.
    """
    if not session_id or not model_name:
        raise ValueError("Missing required fields: model_name, session_id")
    if entry_path not in ENTRY_PATHS:
        raise ValueError(f"entry_path must be one of {', '.join(ENTRY_PATHS)}")

    text = (text or "").strip() or None
    embedding: list[float] | None = None
    if text:
        provider = provider or EmbeddingProvider.from_config(config)
        embedding = provider.embed(text)
        logger.info(f"Generated embedding with {len(embedding)} dimensions")

    event = {
        "session_id": session_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "model_name": model_name,
        "event_type": "search",
        "entry_path": entry_path,
        "quick_report_text": text,
        "embedding": embedding or [],
    }

    owns_store = store is None
    store = store or get_event_store(config)
    try:
        store.ingest_event(event)
    finally:
        if owns_store:
            store.close()

    min_text_length = config.get("clustering", {}).get("min_text_length", 10)
    if trigger and embedding and len(text) > min_text_length:
        # A fresh store per run; the one above may already be closed
        trigger_clustering_in_background(config, store=None if owns_store else store)

    return event
