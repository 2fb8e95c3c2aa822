#!/usr/bin/env python3
"""
k8s-eagle - Main Entry Point

This is the thin orchestration layer that:
1. Loads runtime settings, the watcher document and secrets
2. Resolves watchers (fail fast on missing secrets)
3. Runs the supervisor, and the health server when enabled

All business logic is in the modules, following black box principles.
"""

import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import replace
from typing import List, Optional

from kubernetes.config import ConfigException

from k8s_eagle import __version__
from k8s_eagle.config.provider import (
    LOG_FORMATS,
    RESTART_POLICIES,
    EnvConfigProvider,
    RuntimeConfig,
)
from k8s_eagle.logging_config import configure_logging
from k8s_eagle.modules.config import (
    ConfigError,
    ResolvedWatcher,
    load_config,
    load_secrets,
    resolve_watchers,
)
from k8s_eagle.modules.dispatch import WebhookDispatcher
from k8s_eagle.modules.health import build_health_server, create_health_app
from k8s_eagle.modules.supervisor import Supervisor
from k8s_eagle.modules.watch import EventSource, KubernetesEventSource

logger = logging.getLogger("k8s_eagle")


def parse_args(argv: Optional[List[str]] = None, defaults: Optional[RuntimeConfig] = None) -> RuntimeConfig:
    """Parse CLI flags; each flag overrides the matching environment variable."""
    defaults = defaults or RuntimeConfig()

    parser = argparse.ArgumentParser(
        prog="k8s-eagle",
        description="Kubernetes deployment watcher with multiple webhook support",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config-path", default=defaults.config_path,
                        help="Watcher document (env: CONFIG_PATH)")
    parser.add_argument("--secrets-path", default=defaults.secrets_path,
                        help="Directory of secret files (env: SECRETS_PATH)")
    parser.add_argument("--log-level", default=defaults.log_level,
                        help="Logging level (env: LOG_LEVEL)")
    parser.add_argument("--log-format", default=defaults.log_format, choices=LOG_FORMATS,
                        help="Log output format (env: LOG_FORMAT)")
    parser.add_argument("--max-in-flight", type=int, default=defaults.max_in_flight,
                        help="Max concurrent webhook POSTs (env: MAX_IN_FLIGHT_DELIVERIES)")
    parser.add_argument("--webhook-timeout", type=float, default=defaults.webhook_timeout,
                        help="Per-POST timeout in seconds (env: WEBHOOK_TIMEOUT_SECONDS)")
    parser.add_argument("--drain-timeout", type=float, default=defaults.drain_timeout,
                        help="Shutdown wait for in-flight deliveries (env: DRAIN_TIMEOUT_SECONDS)")
    parser.add_argument("--restart-policy", default=defaults.restart_policy, choices=RESTART_POLICIES,
                        help="Watch loop restart policy (env: RESTART_POLICY)")
    parser.add_argument("--restart-backoff-initial", type=float, default=defaults.backoff_initial,
                        help="First restart delay in seconds (env: RESTART_BACKOFF_INITIAL)")
    parser.add_argument("--restart-backoff-max", type=float, default=defaults.backoff_max,
                        help="Upper bound for the restart delay (env: RESTART_BACKOFF_MAX)")
    parser.add_argument("--health-port", type=int, default=defaults.health_port,
                        help="Serve /healthz, /status and /metrics on this port (env: HEALTH_PORT)")

    args = parser.parse_args(argv)

    return replace(
        defaults,
        config_path=args.config_path,
        secrets_path=args.secrets_path,
        log_level=args.log_level.upper(),
        log_format=args.log_format,
        max_in_flight=args.max_in_flight,
        webhook_timeout=args.webhook_timeout,
        drain_timeout=args.drain_timeout,
        restart_policy=args.restart_policy,
        backoff_initial=args.restart_backoff_initial,
        backoff_max=args.restart_backoff_max,
        health_port=args.health_port,
    ).validate()


def load_watchers(settings: RuntimeConfig) -> List[ResolvedWatcher]:
    """
    Load configuration and secrets and resolve every watcher.

    Raises:
        ConfigError: On any unreadable document or missing secret
    """
    config = load_config(settings.config_path)
    logger.info(
        "loaded configuration",
        extra={"config_path": settings.config_path, "watchers_count": len(config.watchers)},
    )

    secrets = load_secrets(settings.secrets_path)
    logger.info("loaded secrets", extra={"secrets_count": len(secrets)})

    return resolve_watchers(config, secrets)


async def run(settings: RuntimeConfig, watchers: List[ResolvedWatcher], source: EventSource) -> None:
    """Run all watchers until they terminate or the process is signalled."""
    dispatcher = WebhookDispatcher(
        max_in_flight=settings.max_in_flight, timeout=settings.webhook_timeout
    )
    supervisor = Supervisor(
        watchers,
        source,
        dispatcher,
        restart_policy=settings.restart_policy,
        backoff_initial=settings.backoff_initial,
        backoff_max=settings.backoff_max,
    )

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_requested.set)

    health_server = None
    health_task = None
    if settings.health_port is not None:
        health_server = build_health_server(
            create_health_app(supervisor, dispatcher), settings.health_port
        )
        health_task = asyncio.create_task(health_server.serve(), name="health-server")
        logger.info("health server started", extra={"port": settings.health_port})

    supervisor_task = asyncio.create_task(supervisor.run(), name="supervisor")
    stop_task = asyncio.create_task(stop_requested.wait(), name="stop-signal")

    try:
        await asyncio.wait({supervisor_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if stop_requested.is_set():
            logger.info("shutdown requested")
            await supervisor.stop()
        await supervisor_task
    finally:
        stop_task.cancel()
        await asyncio.gather(stop_task, return_exceptions=True)
        await dispatcher.drain(settings.drain_timeout)
        await dispatcher.aclose()
        if health_server is not None:
            health_server.should_exit = True
            await health_task
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)


def main(argv: Optional[List[str]] = None) -> int:
    try:
        settings = parse_args(argv, EnvConfigProvider().get_runtime_config())
    except ValueError as e:
        print(f"k8s-eagle: invalid settings: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level, settings.log_format)
    logger.info("starting k8s-eagle", extra={"config_path": settings.config_path, "version": __version__})

    try:
        watchers = load_watchers(settings)
    except ConfigError as e:
        logger.error("invalid configuration", extra={"error": str(e)})
        return 1

    try:
        source = KubernetesEventSource.from_environment()
    except ConfigException as e:
        logger.error("cannot configure Kubernetes client", extra={"error": str(e)})
        return 1

    asyncio.run(run(settings, watchers, source))
    logger.info("k8s-eagle stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
