#  Map Vault - Entry Point
#
#  Loads config, sets up logging, and serves the app with uvicorn.
#
#  Depends on: mapvault/app.py, mapvault/config.py, mapvault/logging_config.py
#  Used by:    (run directly)

import logging
import sys

import uvicorn

from mapvault.logging_config import setup_logging


def main():
    try:
        from mapvault.config import DB_PATH, HOST, PORT, STORAGE_DIR, cfg
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(
        level=cfg("server.log_level", "INFO"),
        fmt=cfg("server.log_format", "json"),
    )
    logging.getLogger("mapvault.run").info(
        "Serving on %s:%s (db=%s, storage=%s)", HOST, PORT, DB_PATH, STORAGE_DIR,
    )

    uvicorn.run(
        "mapvault.app:app",
        host=HOST,
        port=PORT,
        reload=cfg("server.reload", False),
    )


if __name__ == "__main__":
    main()
