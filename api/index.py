"""Serverless entry point (Vercel Python runtime).

The runtime starts in the project root while the package lives under ./src.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Deployed builds run as prod unless ENV says otherwise; prod refuses the default JWT secret.
os.environ.setdefault("ENV", os.environ.get("VERCEL_ENV") or "prod")

from bilgeverse.main import app  # noqa: E402,F401
