"""
Sweep trigger.

An external cron (or any operator) POSTs here to run one reconciliation
pass. Authenticated by a shared secret, not by an actor token; the sweep
itself runs as the system actor.
"""

from __future__ import annotations

import hmac
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header

from content_lifecycle.api.deps import get_sweep_secret, get_sweeper
from content_lifecycle.core.services.scheduler import PublishSweeper
from content_lifecycle.domain.errors import Unauthorized

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/sweep")
def run_sweep(
    x_sweep_secret: str | None = Header(default=None),
    expected_secret: str | None = Depends(get_sweep_secret),
    sweeper: PublishSweeper = Depends(get_sweeper),
) -> dict[str, Any]:
    """Publish every due scheduled item. Per-item failures are in `results`."""
    if not expected_secret:
        raise Unauthorized("Sweep trigger is disabled (no secret configured)")
    if not x_sweep_secret or not hmac.compare_digest(x_sweep_secret, expected_secret):
        raise Unauthorized("Invalid sweep secret")

    summary = sweeper.sweep()
    return summary.to_dict()
