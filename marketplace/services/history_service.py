"""Per-viewer browsing history kept in Redis.

Each viewer has a list at ``history:<viewer_id>``, newest view first, holding
JSON entries ``{"product_id", "category_id", "timestamp"}`` with at most one
entry per product.
"""
import json
import logging
import time
from collections import Counter
from flask import current_app
import marketplace.extensions as ext

logger = logging.getLogger(__name__)


class HistoryUnavailable(RuntimeError):
    pass


def _client():
    if ext.redis_client is None:
        raise HistoryUnavailable("Browsing history store is not configured")
    return ext.redis_client


def _key(viewer_id):
    return f"history:{viewer_id}"


def get_history(viewer_id):
    """Return history entries, newest first. Corrupt entries are skipped."""
    raw_entries = _client().lrange(_key(viewer_id), 0, -1)
    history = []
    for raw in raw_entries:
        try:
            entry = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(entry, dict) and entry.get("product_id") is not None:
            history.append(entry)
    return history


def add_product_view(viewer_id, product_id, category_id):
    """Move ``product_id`` to the front of the viewer's history."""
    client = _client()
    key = _key(viewer_id)
    limit = current_app.config["BROWSING_HISTORY_LIMIT"]

    kept = [h for h in get_history(viewer_id) if h["product_id"] != product_id]
    entry = {"product_id": product_id, "category_id": category_id, "timestamp": int(time.time())}
    entries = [entry] + kept[: limit - 1]

    pipe = client.pipeline()
    pipe.delete(key)
    pipe.rpush(key, *[json.dumps(e) for e in entries])
    pipe.execute()


def top_categories(viewer_id, limit=5):
    """Most frequently viewed category IDs, most viewed first."""
    counts = Counter(
        h.get("category_id") for h in get_history(viewer_id) if h.get("category_id")
    )
    return [category_id for category_id, _ in counts.most_common(limit)]


def recent_product_ids(viewer_id, limit=10):
    return [h["product_id"] for h in get_history(viewer_id)[:limit]]


def clear(viewer_id):
    _client().delete(_key(viewer_id))


def record_view(viewer_id, product):
    """Best-effort history write for a product page view."""
    if not viewer_id:
        return
    try:
        add_product_view(viewer_id, product.id, product.category_id)
    except Exception:
        logger.warning("Could not record browsing history for %s", viewer_id, exc_info=True)
