import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "cors-proxy")

# Flag defaults; command-line arguments take precedence
SERVER_PORT = int(os.environ.get("SERVER_PORT", "4000"))
UPSTREAM_HOST = os.environ.get("UPSTREAM_HOST", "")
ALLOW_HEADERS = os.environ.get("ALLOW_HEADERS") or None
PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "300"))  # 5 minutes default

LISTEN_HOST = "127.0.0.1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
