import multiprocessing
import os

wsgi_app = "dynpages:create_app()"
# Rate-limit counters are per process unless USE_REDIS is on; keep one worker otherwise
workers = int(os.environ.get("WEB_CONCURRENCY", (multiprocessing.cpu_count() * 2) + 1 if os.environ.get("USE_REDIS") else 1))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
worker_class = "gthread"
preload_app = True
bind = os.environ.get("BIND", ":8000")
# Heroku/Render style proxy headers
forwarded_allow_ips = "*"
# Outbound webhook calls may take up to WEBHOOK_TIMEOUT (30s)
timeout = 60
keepalive = 75
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
