#!/usr/bin/env python3
"""
Entrypoint to run the GitLab OAuth Portal with `python app.py`.
Reads `.env` from project root and supports HOST/PORT/RELOAD/WORKERS/LOG_LEVEL overrides.
"""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
import uvicorn


def main() -> None:
    load_dotenv(dotenv_path=Path(__file__).with_name(".env"))

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8080"))
    reload_enabled = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes", "on")
    # uvicorn ожидает нижний регистр: debug/info/warning/error/critical/trace
    log_level = (os.getenv("LOG_LEVEL", "info") or "info").lower()
    workers = int(os.getenv("WORKERS", "1") or "1")

    # Сессии хранятся в памяти процесса, поэтому воркер должен быть один
    if workers > 1:
        logging.warning("WORKERS=%s ignored: in-memory sessions need a single worker", workers)
        workers = 1

    reload_dirs = [str(Path(__file__).parent / "portal")] if reload_enabled else None

    uvicorn.run(
        "portal.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload_enabled,
        log_level=log_level,
        workers=workers,
        reload_dirs=reload_dirs,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
