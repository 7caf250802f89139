import os
import sys
from pathlib import Path

# Make the packages under src importable without an install
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

# Separate database file so a local bilgeverse.db is never touched
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

# Tells the config loader not to read .env / .env.local
os.environ["PYTEST_RUNNING"] = "1"

# Bootstrap admin is created on startup in every test app
os.environ.setdefault("ADMIN_USERNAME", "admin")
os.environ.setdefault("ADMIN_PASSWORD", "adminpass123")
