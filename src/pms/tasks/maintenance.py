"""Maintenance background tasks for cleanup operations."""

import logging
from datetime import UTC, datetime
from typing import Any

from pms.database import get_session_context
from pms.services import token_store

logger = logging.getLogger(__name__)

# Timeout for maintenance tasks (5 minutes)
MAINTENANCE_TIMEOUT_SECONDS = 5 * 60


async def sweep_expired_tokens(
    ctx: dict[str, Any],
    dry_run: bool = False,
) -> dict[str, Any]:
    """Delete verification token rows past their expiry.

    Only rows already expired are touched, so this can run at any time
    alongside live registration and verification requests.

    Args:
        ctx: SAQ context
        dry_run: If True, only report what would be deleted

    Returns:
        Dict with per-kind counts
    """
    now = datetime.now(UTC)

    async with get_session_context() as session:
        try:
            if dry_run:
                counts = await token_store.count_expired(session, now)
            else:
                counts = await token_store.delete_expired(session, now)
                await session.commit()
        except Exception as e:
            error = f"Expired token sweep failed: {e}"
            logger.exception(error)
            await session.rollback()
            return {"success": False, "error": error}

    total = sum(counts.values())
    logger.info(
        f"Expired token sweep complete: {total} rows "
        f"{'would be ' if dry_run else ''}deleted"
    )
    return {
        "success": True,
        "dry_run": dry_run,
        "cutoff": now.isoformat(),
        "by_kind": counts,
        "deleted_count": 0 if dry_run else total,
        "expired_count": total,
    }


# Set SAQ job timeout
sweep_expired_tokens.timeout = MAINTENANCE_TIMEOUT_SECONDS  # type: ignore[attr-defined]
