"""Module entry point: python -m ride_overlay ..."""

from __future__ import annotations

from ride_overlay.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
