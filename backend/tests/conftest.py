import os
import sys
from pathlib import Path


# Ensure `backend/` is on sys.path so tests can import local modules
# like `engine.*`, `geo.*`, and `main`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))

# Keep test runs from writing into the checkout's telemetry file;
# telemetry tests opt back in with their own path.
os.environ.setdefault("MAPVIEW_TELEMETRY", "0")
