#!/usr/bin/env python3
"""
Launch the interview assistant service with command-line overrides.
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path

import uvicorn


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the interview assistant HTTP service.",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Service bind host.")
    parser.add_argument("--port", type=int, default=8780, help="Service bind port.")
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory for the persisted candidate store. Default: ./data.",
    )
    parser.add_argument(
        "--transcript-file",
        default=None,
        help="Override transcript file path. Default: <data-dir>/interview_transcript.txt.",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Ignore API credentials and use fallback questions, scoring and summaries.",
    )
    parser.add_argument(
        "--fast",
        action="store_true",
        help="Skip the simulated processing delays before assessment calls.",
    )
    parser.add_argument("--log-level", default="info", help="Uvicorn log level.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    os.environ["SERVICE_HOST"] = args.host
    os.environ["SERVICE_PORT"] = str(args.port)
    if args.data_dir:
        os.environ["DATA_DIR"] = str(Path(args.data_dir).expanduser())
    if args.transcript_file:
        os.environ["TRANSCRIPT_FILE"] = str(Path(args.transcript_file).expanduser())
    if args.fast:
        os.environ["ASSESSMENT_DELAY_SCALE"] = "0"

    from interview_service import app  # Import after env config

    if args.offline:
        # Blank out credentials after import so .env cannot restore them
        for name in ("OPENAI_API_KEY", "AZURE_OPENAI_ENDPOINT", "AZURE_OPENAI_KEY", "AZURE_OPENAI_DEPLOYMENT"):
            os.environ[name] = ""

    print(
        f"Starting interview assistant bind=http://{args.host}:{args.port} "
        f"data_dir={os.environ.get('DATA_DIR', './data')} offline={args.offline}"
    )
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
