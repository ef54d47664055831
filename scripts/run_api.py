import subprocess
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from packages.config import API_HOST, API_PORT, RUN_MODE


def main():
    reload_flag = ["--reload"] if RUN_MODE != "prod" else []
    subprocess.run(
        [sys.executable, "-m", "uvicorn", "apps.api.main:app", *reload_flag, "--host", API_HOST, "--port", str(API_PORT)],
        check=True,
        cwd=str(ROOT),
    )


if __name__ == "__main__":
    main()
