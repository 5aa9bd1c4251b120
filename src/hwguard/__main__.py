"""
Entry point for the hwguard CLI.

Usage:
    hwguard              Run the monitor service (poller + HTTP API)
    hwguard --run-once   Poll sensors once, evaluate the guard, print the report
    hwguard --test       Validate configuration and show resolved temperatures
    hwguard --status     Show the guard status of a running instance
    hwguard --cancel     Cancel a pending thermal shutdown on a running instance
    hwguard --version    Show version and exit

Exit Codes:
    0 - Success
    1 - Configuration error (invalid settings) or a failed --run-once poll
    2 - Connection error (cannot reach a running instance)
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from types import FrameType

    from hwguard.config import HwGuardSettings
    from hwguard.guard import ThermalGuard
    from hwguard.scheduler import GuardPoller
    from hwguard.sensors import ResolverChain
    from hwguard.shutdown import SystemShutdown

from hwguard import __version__

EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_CONNECTION_ERROR = 2


@dataclass
class Components:
    """Everything the service wires together at startup."""

    guard: "ThermalGuard"
    poller: "GuardPoller"
    power: "SystemShutdown"
    chain: "ResolverChain"


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="hwguard",
        description="Hardware sensor monitor with automatic thermal shutdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0   Success
  1   Configuration error
  2   Connection error (cannot reach a running instance)

Environment Variables:
  CONFIG_PATH                Path to YAML configuration file
  HWGUARD_HOST               API bind address (default: 127.0.0.1)
  HWGUARD_PORT               API port (default: 3005)
  HWGUARD_POLL_INTERVAL      Seconds between polls (default: 3)
  HWGUARD_HELPER_COMMAND     Command printing temperatures as JSON
  HWGUARD_GUARD_ENABLED      Arm the thermal guard at startup
  HWGUARD_CPU_THRESHOLD      CPU shutdown threshold in Celsius
  HWGUARD_SHUTDOWN_DELAY     Grace period in seconds (10-300)
  HWGUARD_SHUTDOWN_DRY_RUN   Log shutdown commands instead of running them
  HWGUARD_LOG_LEVEL          Logging level: DEBUG, INFO, WARNING, ERROR
  HWGUARD_LOG_FORMAT         Log format: json or text

Examples:
  # Run with config file
  CONFIG_PATH=/etc/hwguard/config.yaml hwguard

  # Check sensors without starting the service
  hwguard --test

  # Abort a thermal shutdown from another terminal
  hwguard --cancel
""",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--test",
        action="store_true",
        help="Validate configuration, resolve temperatures once, then exit",
    )
    mode.add_argument(
        "--run-once",
        action="store_true",
        help="Run one poll cycle (including guard evaluation) and print the report",
    )
    mode.add_argument(
        "--status",
        action="store_true",
        help="Print the guard status of a running instance",
    )
    mode.add_argument(
        "--cancel",
        action="store_true",
        help="Cancel a pending thermal shutdown on a running instance",
    )
    return parser.parse_args(argv)


def handle_sighup(signum: int, frame: Optional[FrameType]) -> None:
    """Handle SIGHUP: reload configuration and reapply logging settings.

    Loggers are not cached, so the new level and format reach module level
    loggers that have already logged.
    """
    from hwguard.config.loader import reload_config
    from hwguard.logging import configure_logging, get_logger

    log = get_logger(signal="SIGHUP")
    log.info("received_sighup", action="reloading configuration")
    try:
        config = reload_config()
        configure_logging(log_format=config.log_format, log_level=config.log_level)
        log.info("config_reloaded", status="success")
    except SystemExit:
        log.error("config_reload_failed", error="validation failed")
    except Exception as e:
        log.error("config_reload_failed", error=str(e))


def print_banner(config: "HwGuardSettings") -> None:
    """Print startup banner with version and configuration summary."""
    lines = [
        "",
        f"hwguard v{__version__}",
        "=" * 40,
        f"API:           http://{config.host}:{config.port}",
        f"Poll Interval: {config.poll_interval}s",
        f"Guard:         {'enabled' if config.guard_enabled else 'disabled'}",
        f"Thresholds:    cpu {config.cpu_threshold:g} / gpu {config.gpu_threshold:g} / mb {config.mb_threshold:g} C",
        f"Delay:         {config.shutdown_delay}s{' (dry run)' if config.shutdown_dry_run else ''}",
        f"Log Level:     {config.log_level}",
        f"Log Format:    {config.log_format}",
        "=" * 40,
        "",
    ]
    for line in lines:
        print(line)


def build_components(config: "HwGuardSettings") -> Components:
    """Construct the guard, poller and shutdown commander from settings."""
    from hwguard.guard import PolicyStore, ThermalGuard
    from hwguard.scheduler import GuardPoller
    from hwguard.sensors import CachedTemperatureSource, HostCollector, build_default_chain
    from hwguard.shutdown import SystemShutdown

    power = SystemShutdown(
        platform=config.shutdown_platform,
        dry_run=config.shutdown_dry_run,
        request_timeout=config.shutdown_timeout,
        cancel_timeout=config.cancel_timeout,
    )
    guard = ThermalGuard(PolicyStore(config.initial_policy()), power)
    chain = build_default_chain(
        helper_command=config.helper_command,
        nvidia_smi_enabled=config.nvidia_smi_enabled,
        timeout=config.sensor_timeout,
    )
    poller = GuardPoller(
        guard=guard,
        temperatures=CachedTemperatureSource(chain, ttl=config.sensor_cache_ttl),
        host=HostCollector(nvidia_smi_enabled=config.nvidia_smi_enabled),
        interval=config.poll_interval,
    )
    return Components(guard=guard, poller=poller, power=power, chain=chain)


def run_client_command(config: "HwGuardSettings", cancel: bool, log: Any) -> int:
    """Query or cancel a running instance over HTTP."""
    from hwguard.api.client import GuardClient
    from hwguard.exceptions import ClientError

    host = "127.0.0.1" if config.host in ("0.0.0.0", "::") else config.host
    try:
        with GuardClient(f"http://{host}:{config.port}") as client:
            result = client.cancel() if cancel else client.status()
    except ClientError as e:
        log.error("client_request_failed", error=e.message)
        print(f"\nConnection error: {e}", file=sys.stderr)
        return e.exit_code
    print(json.dumps(result, indent=2))
    return EXIT_SUCCESS


def run_test(config: "HwGuardSettings") -> int:
    """Resolve temperatures once and print them with their sources."""
    from hwguard.sensors import build_default_chain

    chain = build_default_chain(
        helper_command=config.helper_command,
        nvidia_smi_enabled=config.nvidia_smi_enabled,
        timeout=config.sensor_timeout,
    )
    try:
        snapshot = chain.resolve()
    finally:
        chain.close()

    print_banner(config)
    for label, value, source in (
        ("CPU", snapshot.cpu_temp, snapshot.sources.get("cpu")),
        ("GPU", snapshot.gpu_temp, snapshot.sources.get("gpu")),
        ("Motherboard", snapshot.mb_temp, snapshot.sources.get("mb")),
    ):
        reading = f"{value:g} C ({source})" if value is not None else "unavailable"
        print(f"{label + ':':<13} {reading}")
    if snapshot.is_empty:
        print("\nWarning: no temperature source is available; the guard cannot trip.")
    print("Configuration: OK")
    return EXIT_SUCCESS


def run_once(config: "HwGuardSettings", log: Any) -> int:
    """Run one poll cycle and print the resulting report and guard status."""
    from hwguard.health import clear_health_status

    components = build_components(config)
    try:
        report = components.poller.tick()
    finally:
        components.chain.close()
        clear_health_status()

    if report is None:
        print("\nPoll failed; see log output for details.", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    print(json.dumps({"system": report.to_api(), "guard": components.guard.status().to_api()}, indent=2))
    return EXIT_SUCCESS


def serve(config: "HwGuardSettings", log: Any) -> int:
    """Start the poller and serve the HTTP API until interrupted."""
    import uvicorn

    from hwguard.api import create_app
    from hwguard.health import HealthStatus, clear_health_status, update_health_status

    print_banner(config)
    log.info("starting", version=__version__)
    update_health_status(HealthStatus.STARTING)

    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, handle_sighup)

    components = build_components(config)
    app = create_app(
        guard=components.guard,
        poller=components.poller,
        power=components.power,
        power_api_enabled=config.power_api_enabled,
    )

    components.poller.start()
    log.info(
        "service_starting",
        host=config.host,
        port=config.port,
        guard_state=components.guard.state.value,
    )
    try:
        uvicorn.run(
            app,
            host=config.host,
            port=config.port,
            log_level=config.log_level.lower(),
            log_config=None,  # uvicorn logs through the handlers configure_logging installs
        )
    except KeyboardInterrupt:
        log.info("shutdown", reason="keyboard interrupt")
    finally:
        components.poller.shutdown()
        components.chain.close()
        clear_health_status()
        if components.guard.incident is not None:
            # In-memory incident is lost on exit; the OS shutdown stays scheduled
            log.warning("exiting_with_pending_shutdown", triggered_by=components.guard.incident.label)
    return EXIT_SUCCESS


def main(argv: Optional[list] = None) -> int:
    """Main entry point for hwguard.

    Returns:
        Exit code (0=success, 1=config error, 2=connection error)
    """
    args = parse_args(argv)

    from hwguard.config.loader import ConfigurationError, load_config
    from hwguard.logging import configure_logging, get_logger

    try:
        config = load_config()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except SystemExit as e:
        # Validation errors cause sys.exit(1) in loader
        return e.code if isinstance(e.code, int) else EXIT_CONFIG_ERROR

    configure_logging(log_format=config.log_format, log_level=config.log_level)
    log = get_logger()

    if args.status or args.cancel:
        return run_client_command(config, cancel=args.cancel, log=log)
    if args.test:
        return run_test(config)
    if args.run_once:
        return run_once(config, log)
    return serve(config, log)


if __name__ == "__main__":
    sys.exit(main())
