"""Depths tick service — dev launcher. Starts the API server in watch mode."""

import argparse
import asyncio
import logging
import os
import subprocess
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Depths tick service dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Clean and create the demo dungeon, hero and instance")
    args = parser.parse_args()
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    data_dir = (args.data_dir or ROOT / "data").resolve()

    if args.demo:
        from depths.content import load_content
        from depths.demo import create_demo_data
        from depths.storage import GameStore, JsonRecordStore

        store = GameStore(JsonRecordStore(data_dir), load_content(data_dir / "content.json"))
        instance = asyncio.run(create_demo_data(store))
        print(f"Demo instance: {instance.id} (character {instance.characters[0]})")

    # Build env for the server process so it picks up the same data dir
    env = os.environ.copy()
    env["DATA_DIR"] = str(data_dir)

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    proc = subprocess.Popen(
        ["uvicorn", "depths.api.app:app", "--reload", "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


if __name__ == "__main__":
    main()
