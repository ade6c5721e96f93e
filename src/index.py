## Main Execution Script
from controllers import main_signaling_task
from tools.logger import *
from tools.settings import CoordinatorSettings, DELIVERY_MODES
import argparse
import asyncio
import dataclasses

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="WebRTC Signaling Coordinator")
    parser.add_argument("--host", default=DEFAULT_HOST, help="Address to bind")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to bind")
    parser.add_argument(
        "-l",
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (use -l or --log-level)",
    )
    parser.add_argument(
        "--log-dir",
        default=None,
        help="Also write dated log files under this directory",
    )
    parser.add_argument(
        "--delivery",
        choices=DELIVERY_MODES,
        default=None,
        help="Candidate delivery offered to Socket.IO clients",
    )
    parser.add_argument(
        "--idle-timeout",
        type=float,
        default=None,
        help="Seconds of inactivity before a session is failed",
    )
    parser.add_argument(
        "--answerer",
        choices=["relay", "none"],
        default="relay",
        help="Answer offers with the media relay, or wait for a remote peer's answer",
    )
    args = parser.parse_args()

    set_log_level(args.log_level)
    if args.log_dir:
        enable_file_logging(args.log_dir)

    settings = CoordinatorSettings.from_env()
    overrides = {}
    if args.delivery:
        overrides["delivery_mode"] = args.delivery
    if args.idle_timeout is not None:
        overrides["idle_timeout"] = args.idle_timeout
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    try:
        asyncio.run(
            main_signaling_task(args.host, args.port, settings, answerer=args.answerer)
        )
    except KeyboardInterrupt:
        log_warning("Keyboard interrupt received. Shutting down signaling server.")
    except Exception as e:
        log_error(f"Error on signaling server: {e}")
        raise
