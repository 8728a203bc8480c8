"""
Gunicorn configuration for production deployment.

Runs the analytics API (app.main:app) behind uvicorn workers. Reports are
computed in memory per request, so worker count and timeout are the main
capacity knobs for organizations with large execution histories.
"""
import multiprocessing
import os

bind = f"{os.getenv('HOST', '0.0.0.0')}:{os.getenv('PORT', '8000')}"

# Workers
workers = int(os.getenv('GUNICORN_WORKERS', multiprocessing.cpu_count() * 2 + 1))
worker_class = 'uvicorn.workers.UvicornWorker'
max_requests = int(os.getenv('GUNICORN_MAX_REQUESTS', '1000'))
max_requests_jitter = int(os.getenv('GUNICORN_MAX_REQUESTS_JITTER', '50'))
timeout = int(os.getenv('GUNICORN_TIMEOUT', '60'))  # Large flaky-test reports may take a while
graceful_timeout = 30

proc_name = 'testpulse-analytics'

# Logging
accesslog = os.getenv('GUNICORN_ACCESS_LOG', '-')
errorlog = os.getenv('GUNICORN_ERROR_LOG', '-')
loglevel = os.getenv('GUNICORN_LOG_LEVEL', 'info')


def when_ready(server):
    server.log.info(f"Test Pulse Analytics API ready with {workers} workers")


def worker_abort(worker):
    """Called on SIGABRT, usually a report that exceeded the timeout."""
    worker.log.warning(f"Worker aborted, report request exceeded {timeout}s (pid: {worker.pid})")
