#!/usr/bin/env python3
"""Development scripts for the GoBus Booking Platform."""

import subprocess
import sys


def start():
    """Start the development server."""
    subprocess.run([
        "uvicorn",
        "gobus_booking_platform.main:app",
        "--host", "0.0.0.0",
        "--port", "3000",
        "--reload"
    ])


def worker():
    """Start a Celery worker for notification tasks."""
    subprocess.run([
        "celery",
        "-A", "gobus_booking_platform.tasks.celery_app",
        "worker",
        "-Q", "notifications",
        "--loglevel=info"
    ])


def test():
    """Run the test suite."""
    sys.exit(subprocess.run(["pytest", "tests/"]).returncode)


def lint():
    """Run formatting and type checking."""
    subprocess.run(["black", "gobus_booking_platform/", "tests/"])
    subprocess.run(["mypy", "gobus_booking_platform/"])


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts.py <command>")
        print("Commands: start, worker, test, lint")
        sys.exit(1)

    command = sys.argv[1].replace("-", "_")
    if hasattr(sys.modules[__name__], command):
        getattr(sys.modules[__name__], command)()
    else:
        print(f"Unknown command: {sys.argv[1]}")
        sys.exit(1)
