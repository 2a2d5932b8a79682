"""Root conftest: shared test configuration."""

import os

# Ensure tests never reach a real identity service or write a real store
os.environ.setdefault("AUTH_SERVICE_URL", "http://auth.test/api/v1/auth")
os.environ.setdefault("TOKEN_STORAGE", "memory")
os.environ.setdefault("LOG_FORMAT", "text")
