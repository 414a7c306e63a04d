"""EntregaHub Worker service.

Background process that keeps the delivery pool healthy:
- Expires offers nobody accepted in time
- Returns abandoned acceptances to the pool
- Flags deliveries stuck in transit for human follow-up

Usage:
    # Run as module
    python -m entregahub.worker

    # Or through the console script
    entregahub-worker
"""

from entregahub.worker.cleanup import DeliveryCleanupService, SweepReport
from entregahub.worker.main import run
from entregahub.worker.scheduler import run_cleanup_loop, run_cleanup_tick

__all__ = [
    "DeliveryCleanupService",
    "SweepReport",
    "run",
    "run_cleanup_loop",
    "run_cleanup_tick",
]
