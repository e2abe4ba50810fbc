"""Root conftest: settings are built at import time, so the test environment goes in first."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values

_env_test = Path(__file__).resolve().parent / ".env.test"

# Real environment wins over the file; the file wins over these.
_defaults = {
    "POSTGRES_USER": "chat",
    "POSTGRES_PASSWORD": "chat",
    "POSTGRES_DB": "chat_test",
    "FANOUT_BACKEND": "local",
    "DB_CREATE_SCHEMA": "false",
}
if _env_test.exists():
    _defaults.update({k: v for k, v in dotenv_values(_env_test).items() if v is not None})

for key, value in _defaults.items():
    os.environ.setdefault(key, value)
