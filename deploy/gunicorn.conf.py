"""
Gunicorn configuration for the Exam Platform API.

    gunicorn -c deploy/gunicorn.conf.py exam_platform.main:app

Every worker runs its own lifespan, so with EXPIRY_SWEEP_ENABLED each
worker sweeps. That is safe (auto-submit is idempotent) but redundant;
prefer one `exam-platform sweep --loop` process next to the workers.
"""
import os
import multiprocessing

wsgi_app = "exam_platform.main:app"

# Server socket
bind = os.environ.get("BIND", "0.0.0.0:8000")

# Worker processes
workers = int(os.environ.get("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
keepalive = 5

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()

# Process naming
proc_name = "exam_platform"

# Security
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190


def when_ready(server):
    """Called just after the server is started."""
    server.log.info(f"Exam Platform ready with {workers} workers")
