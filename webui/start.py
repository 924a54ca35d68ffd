"""
SketchFlow Web UI launcher.

Usage:
  python webui/start.py             # Serve the API (and built frontend, if present)
  python webui/start.py --dev       # Auto-reload backend on code changes
"""
from __future__ import annotations

import subprocess
import sys
import time
import webbrowser
from pathlib import Path

REPO_ROOT = Path(__file__).parent.parent
BACKEND_PORT = 8000


def main() -> None:
    dev = "--dev" in sys.argv

    print("=" * 60)
    print("  SketchFlow Web UI")
    print("=" * 60)

    print(f"\n► Starting backend on http://localhost:{BACKEND_PORT} …")
    backend_cmd = [
        sys.executable, "-m", "uvicorn",
        "webui.backend.app:app",
        "--port", str(BACKEND_PORT),
        "--host", "0.0.0.0",
    ]
    if dev:
        backend_cmd.append("--reload")

    backend = subprocess.Popen(backend_cmd, cwd=str(REPO_ROOT))

    time.sleep(1.5)
    url = f"http://localhost:{BACKEND_PORT}/api/state"
    print(f"\n✅ Opening {url}")
    webbrowser.open(url)

    try:
        backend.wait()
    except KeyboardInterrupt:
        print("\n⛔ Shutting down…")
    finally:
        backend.terminate()


if __name__ == "__main__":
    main()
