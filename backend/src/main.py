"""Sidecar entry point: telemetry, resource limits, port handshake, serve."""

import os
import platform
import sys
from pathlib import Path

import sentry_sdk

from _version import __version__
from diagnostics import init_diagnostics
from security import strip_pii
from zmq_server import ZMQServer

CONSENT_FILE = "~/.pixelsort/telemetry_consent"

# Two full-size RGBA buffers per canvas plus the working copy fit well below this
MAX_MEMORY_BYTES = 4 * 1024 * 1024 * 1024  # 4 GB


def telemetry_dsn() -> str:
    """SENTRY_DSN, but only once the user has opted in. Empty string disables Sentry."""
    consent = Path(os.path.expanduser(CONSENT_FILE))
    if not consent.is_file() or consent.read_text().strip() != "yes":
        return ""
    return os.environ.get("SENTRY_DSN", "")


def init_sentry():
    sentry_sdk.init(
        dsn=telemetry_dsn(),
        release=f"pixelsort@{__version__}",
        environment=os.environ.get("SENTRY_ENV", "development"),
        before_send=strip_pii,
    )


def _apply_resource_limits():
    """Cap the address space. Skipped on Windows."""
    if platform.system() == "Windows":
        return
    try:
        import resource

        _, hard = resource.getrlimit(resource.RLIMIT_AS)
        resource.setrlimit(resource.RLIMIT_AS, (MAX_MEMORY_BYTES, hard))
    except (ImportError, ValueError, OSError):
        print("WARNING: Could not set memory limit", file=sys.stderr)


def main():
    init_sentry()
    init_diagnostics()
    _apply_resource_limits()
    server = ZMQServer()
    # The host reads these three lines from stdout to connect
    print(f"ZMQ_PORT={server.port}", flush=True)
    print(f"ZMQ_PING_PORT={server.ping_port}", flush=True)
    print(f"ZMQ_TOKEN={server.token}", flush=True)
    server.run()


if __name__ == "__main__":
    main()
