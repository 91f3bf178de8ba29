from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from gamerelay.server.runtime import RelayRuntime

log = logging.getLogger("gamerelay.cmd.server")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def load_config(config_path: Optional[Path]) -> Dict[str, Any]:
    if config_path is None:
        return {}
    config = yaml.safe_load(config_path.read_text()) or {}
    if not isinstance(config, dict):
        raise ValueError(f"{config_path}: expected a mapping at the top level")
    return config


async def _run(runtime: RelayRuntime) -> None:
    await runtime.start()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)
    except NotImplementedError:
        pass

    log.info("Relay running. Press Ctrl+C to stop.")
    try:
        await stop_event.wait()
    finally:
        await runtime.stop()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="UDP game-session relay server")
    parser.add_argument("--config", type=Path, help="Path to relay YAML config")
    parser.add_argument("--log-level", help="Override log level (DEBUG, INFO, ...)")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logging.basicConfig(level=(args.log_level or "INFO").upper(), format=LOG_FORMAT)
        log.error("Error trying to load config: %s", exc)
        raise SystemExit(1)

    level = (args.log_level or config.get("log_level") or "INFO").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)

    try:
        runtime = RelayRuntime(config)
    except (TypeError, ValueError) as exc:
        log.error("Invalid relay config: %s", exc)
        raise SystemExit(1)

    try:
        asyncio.run(_run(runtime))
    except OSError as exc:
        log.error("Error trying to create UDP server: %s", exc)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
