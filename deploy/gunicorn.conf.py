"""Gunicorn configuration for the Classroom Content Insight service.

Usage:
    gunicorn main:app -c deploy/gunicorn.conf.py

Analysis runs execute as asyncio tasks inside the worker that accepted the
processing request, so more than one worker requires
``CONTENT_STORE_TYPE=redis``: status polling and derived views may land on a
different worker than the run.
"""

import os

# ─── Server socket ──────────────────────────────────────────────

bind = os.getenv("BIND", "0.0.0.0:5000")
backlog = 2048

# ─── Worker processes ───────────────────────────────────────────

_store_type = os.getenv("CONTENT_STORE_TYPE", "memory").lower()
workers = int(os.getenv("WORKERS", "4" if _store_type == "redis" else "1"))
worker_class = "uvicorn.workers.UvicornWorker"

# ─── Timeouts ───────────────────────────────────────────────────
#
# One analysis run is a download, one long model call (up to
# MODEL_TIMEOUT_SECONDS) and one embedding call; it runs after the
# 202 response, but graceful shutdown should let it finish.

timeout = 180
graceful_timeout = 150
keepalive = 120  # SSE status streams

# ─── Worker recycling ──────────────────────────────────────────

max_requests = 3000
max_requests_jitter = 500

# ─── Logging ────────────────────────────────────────────────────

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")

proc_name = "content-insight"


def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info(
        "Starting Content Insight: workers=%d, store=%s, timeout=%ds, bind=%s",
        workers,
        _store_type,
        timeout,
        bind,
    )
    if workers > 1 and _store_type != "redis":
        server.log.warning("Multiple workers with the in-memory store: status will not be shared")


def worker_exit(server, worker):
    """Called when a worker has been killed or exited."""
    server.log.info("Worker exit (pid: %s)", worker.pid)
