"""Timestamp formatting for API payloads."""

from datetime import UTC, datetime


def iso_timestamp(epoch_ms: int | None = None) -> str:
    """ISO-8601 UTC with a Z suffix; now when no epoch millis are given."""
    if epoch_ms is None:
        moment = datetime.now(UTC)
    else:
        moment = datetime.fromtimestamp(epoch_ms / 1000, UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
