import os
import sys
import traceback
from typing import Optional

# DEBUG_LOG можно включить через переменную окружения (1/true/yes).
# Если флаг не выставлен, log_debug молчит.
DEBUG_ENABLED = os.getenv("DEBUG_LOG", "0").lower() in {"1", "true", "yes"}


def _prefix(tenant: Optional[str]) -> str:
    return f"[{tenant}] " if tenant else ""


def log_info(msg: str, tenant: Optional[str] = None):
    print(f"[INFO] {_prefix(tenant)}{msg}", file=sys.stdout, flush=True)


def log_debug(msg: str, tenant: Optional[str] = None):
    if DEBUG_ENABLED:
        print(f"[DEBUG] {_prefix(tenant)}{msg}", file=sys.stdout, flush=True)


def log_error(msg: str, exc: Exception | None = None, tenant: Optional[str] = None):
    print(f"[ERROR] {_prefix(tenant)}{msg}", file=sys.stderr, flush=True)
    if exc:
        traceback.print_exception(type(exc), exc, exc.__traceback__)
