# Gunicorn configuration for hashpage
# Serve with: gunicorn -c gunicorn.conf.py "app:create_app()"

import multiprocessing
import os

# Server socket
bind = os.getenv("GUNICORN_BIND", "127.0.0.1:8000")

# Worker processes; sanitization is CPU bound, so threads add little
workers = int(os.getenv("GUNICORN_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "gthread"
threads = 2

# Worker lifecycle
max_requests = 1000
max_requests_jitter = 100
timeout = 30
keepalive = 2
preload_app = True

# Metadata travels in the query string, so allow longer request lines
limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190

# Process management: only drop privileges when running as root
if hasattr(os, "geteuid") and os.geteuid() == 0:
    user = os.getenv("GUNICORN_USER", "hashpage")
    group = os.getenv("GUNICORN_GROUP", "hashpage")

# Logging; "-" sends to stdout/stderr next to the structlog JSON lines
accesslog = os.getenv("GUNICORN_ACCESS_LOG", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOG", "-")
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
# Path only (%(U)s): shared page metadata in the query stays out of access logs
access_log_format = '%(h)s %(t)s "%(m)s %(U)s" %(s)s %(b)s %(D)s'

worker_tmp_dir = "/dev/shm"
