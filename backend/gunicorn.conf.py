import os

wsgi_app = "crm_signup:create_app()"

# Bind & workers
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
# Registrations block on downstream calls; threads keep a worker responsive.
worker_class = "gthread"
threads = int(os.getenv("GUNICORN_THREADS", "4"))
# Above the worst case of a registration with retries and backoff.
timeout = 90
graceful_timeout = 30
keepalive = 5

# Logs to stdout/stderr (collected by Docker)
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# Honour proxy headers from the gateway
forwarded_allow_ips = "*"
proxy_protocol = False
