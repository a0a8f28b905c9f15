#!/usr/bin/env python3
"""
Zone Trainer – Main Application Launcher
-------------------------------------------------
Starts the Flask control API for the local drill session.

Key characteristics:
- Single version source imported from zone_trainer.zt_version
- Clean signal handling (Ctrl+C and SIGTERM)
- Graceful shutdown: stop the session and the timer thread
- CLI flags with environment fallbacks

CLI:
  python zone_trainer_main.py --host 127.0.0.1 --port 5000 --debug 0
ENV:
  ZONE_TRAINER_HOST, ZONE_TRAINER_PORT, ZONE_TRAINER_DEBUG, ZONE_TRAINER_LOG_LEVEL
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from zone_trainer.zt_config import DEBUG, HOST, LOG_LEVEL, PORT
from zone_trainer.zt_version import VERSION

logger = logging.getLogger("zone_trainer")


def _signal_handler(signum, frame):
    """Turn SIGTERM into KeyboardInterrupt so the finally block below runs."""
    del frame
    logger.info("Signal %s received - shutting down", signum)
    raise KeyboardInterrupt


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse CLI args with environment-based defaults."""
    parser = argparse.ArgumentParser(description="Zone Trainer - Drill Launcher")
    parser.add_argument("--host", default=HOST, help="Web host (default env ZONE_TRAINER_HOST)")
    parser.add_argument("--port", type=int, default=PORT, help="Web port (default env ZONE_TRAINER_PORT)")
    parser.add_argument("--debug", type=lambda v: bool(int(v)), default=DEBUG, help="Flask debug (0/1)")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level (default env ZONE_TRAINER_LOG_LEVEL)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Boot the web API and handle lifecycle cleanly."""
    args = _parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        signal.signal(signal.SIGTERM, _signal_handler)
    except (ValueError, OSError):
        # Not on the main thread, or unsupported on this platform
        pass

    # Imported late so logging is configured before the service is built
    from services.drill_service import get_drill_service
    from zone_trainer_web import app

    print(f"=== Zone Trainer {VERSION} – Practice & Rally Drills ===")
    print(f"Web: http://{args.host}:{args.port}  (debug={int(args.debug)})")
    print("Press Ctrl+C to stop")

    service = get_drill_service()
    try:
        # Important: use_reloader=False prevents duplicate processes (and timer threads) in debug
        app.run(host=args.host, port=args.port, debug=args.debug, use_reloader=False)
    except KeyboardInterrupt:
        pass
    finally:
        logger.info("Shutting down Zone Trainer…")
        service.shutdown()
        print("System shutdown complete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
