"""Gunicorn configuration for the grading service.

Usage:
    gunicorn main:app -c deploy/gunicorn.conf.py

Grading calls a vision model with several page images per request and can
take minutes.  Worker count is forced to 1 unless the Redis store is
configured, since the in-memory stores are process-local.
"""

import multiprocessing
import os

bind = os.getenv("BIND", "0.0.0.0:5000")

_shared_store = os.getenv("SUBMISSION_STORE_TYPE", "memory").lower() == "redis"
workers = int(os.getenv("WORKERS", min(multiprocessing.cpu_count(), 4))) if _shared_store else 1
worker_class = "uvicorn.workers.UvicornWorker"

# Must exceed evaluation_timeout * (evaluation_max_retries + 1) plus retry delay
timeout = int(os.getenv("WORKER_TIMEOUT", 420))
graceful_timeout = 60
keepalive = 30

# Large base64 page payloads; recycle workers to bound memory
max_requests = 1000
max_requests_jitter = 200

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")

proc_name = "grading-service"


def on_starting(server):
    server.log.info(
        "Starting grading service — workers=%d, timeout=%ds, shared_store=%s, bind=%s",
        workers,
        timeout,
        _shared_store,
        bind,
    )
