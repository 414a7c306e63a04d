"""Allow running the worker with ``python -m entregahub.worker``."""

from entregahub.worker.main import run

run()
