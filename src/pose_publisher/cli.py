"""
Command-line interface for pose-publisher.

    pose-publisher listen poses          # print every decoded pose batch
    pose-publisher watch --bridge        # keep a replica, log it, serve it over HTTP
    pose-publisher demo bounce           # publish the bouncing demo objects
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from functools import lru_cache
from pathlib import Path

from . import demo, network_utils
from .config import ConfigurationError, ProtocolConfig, create_config_from_args
from .errors import DecodeError, NotMulticastError, PosePublisherError
from .feed import ReplicaFeed
from .logging_utils import configure_logging, shutdown_logging
from .pubsub import (
    CommandSubscriber,
    PointCloudPublisher,
    PointCloudSubscriber,
    PosePublisher,
    PoseSubscriber,
)

logger = logging.getLogger(__name__)

LISTEN_KINDS = {
    "poses": (PoseSubscriber, "pose_endpoint"),
    "point-clouds": (PointCloudSubscriber, "point_cloud_endpoint"),
    "commands": (CommandSubscriber, "command_endpoint"),
}


@lru_cache(maxsize=1)
def get_version() -> str:
    """Installed distribution version, or 'unknown' when running from source."""
    import importlib.metadata as im

    try:
        return im.version("pose-publisher")
    except im.PackageNotFoundError:
        return "unknown"


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, help="User TOML configuration file")
    parser.add_argument("--pose-address", help="Pose multicast group (ip:port)")
    parser.add_argument(
        "--point-cloud-address", help="Point cloud multicast group (ip:port)"
    )
    parser.add_argument("--command-address", help="Command multicast group (ip:port)")
    parser.add_argument(
        "--interface",
        dest="interfaces",
        action="append",
        metavar="IP",
        help="Join multicast groups on this local address (repeatable)",
    )
    parser.add_argument(
        "--all-interfaces",
        action="store_true",
        help="Join multicast groups on every physical interface",
    )
    parser.add_argument("--log-dir", type=Path, help="Enable file logging here")
    parser.add_argument(
        "--log-level",
        dest="log_level_console",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Console log level",
    )
    parser.add_argument(
        "--log-json", dest="log_json_console", action="store_true", help="JSON console logs"
    )
    parser.add_argument("--log-rotation", help="loguru rotation rule, e.g. '10 MB'")
    parser.add_argument("--log-retention", help="loguru retention rule, e.g. '1 week'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pose-publisher",
        description="Multicast pose and point cloud publishing tools",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {get_version()}",
        help="Show version and exit",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    listen = subparsers.add_parser("listen", help="Print every received message")
    listen.add_argument("kind", choices=sorted(LISTEN_KINDS))
    listen.add_argument(
        "--count", type=int, default=None, help="Exit after this many messages"
    )
    _add_common_args(listen)

    watch = subparsers.add_parser(
        "watch", help="Maintain a replica of poses and point clouds"
    )
    watch.add_argument(
        "--bridge", action="store_true", help="Serve the replica over HTTP"
    )
    watch.add_argument("--bridge-port", type=int, help="REST bridge port")
    watch.add_argument(
        "--duration", type=float, default=None, help="Stop after this many seconds"
    )
    _add_common_args(watch)

    demo_parser = subparsers.add_parser("demo", help="Run a demo publisher")
    demo_parser.add_argument("scenario", choices=["bounce", "rotate", "cloud"])
    demo_parser.add_argument(
        "--cycles", type=int, default=None, help="Number of cycles (default: forever)"
    )
    _add_common_args(demo_parser)

    return parser


def _resolve_interfaces(args: argparse.Namespace) -> None:
    if not args.all_interfaces:
        return
    addresses = network_utils.get_local_ip_addresses()
    if addresses:
        combined = (args.interfaces or []) + addresses
        args.interfaces = list(dict.fromkeys(combined))
    else:
        logger.warning("No physical interfaces found, joining on all interfaces")


def cmd_listen(config: ProtocolConfig, args: argparse.Namespace) -> int:
    subscriber_cls, endpoint_attr = LISTEN_KINDS[args.kind]
    endpoint = getattr(config, endpoint_attr)
    received = 0
    with subscriber_cls(endpoint, config.multicast_interfaces) as subscriber:
        logger.info(f"Listening for {args.kind} on {endpoint}")
        while args.count is None or received < args.count:
            try:
                message = subscriber.next()
            except DecodeError as e:
                logger.warning(f"Skipping malformed datagram: {e}")
                continue
            received += 1
            print(f"New {args.kind} message {message!r}", flush=True)
    return 0


def cmd_watch(config: ProtocolConfig, args: argparse.Namespace) -> int:
    interfaces = config.multicast_interfaces
    pose_subscriber = PoseSubscriber(config.pose_endpoint, interfaces)
    cloud_subscriber = PointCloudSubscriber(config.point_cloud_endpoint, interfaces)
    feed = ReplicaFeed(pose_subscriber, cloud_subscriber)

    bridge_server = None
    bridge_publisher = None
    if config.enable_bridge:
        from .rest_bridge import create_app, run_uvicorn_in_thread

        bridge_publisher = PosePublisher(config.pose_endpoint, interfaces)
        app = create_app(feed, bridge_publisher)
        _, bridge_server = run_uvicorn_in_thread(
            app, host=config.bridge_host, port=config.bridge_port
        )

    started = time.monotonic()
    last_log = started
    try:
        while args.duration is None or time.monotonic() - started < args.duration:
            feed.tick()
            now = time.monotonic()
            if now - last_log >= config.status_log_interval:
                stats = feed.get_stats()
                snapshot = feed.snapshot()
                logger.info(
                    f"Status: {len(snapshot.objects)} objects, "
                    f"{len(snapshot.point_clouds)} point clouds, "
                    f"{stats['objects_expired']} expired so far"
                )
                summary = snapshot.summary()
                if summary:
                    logger.info("\n" + summary)
                last_log = now
            time.sleep(config.tick_interval)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal (Ctrl+C)...")
    finally:
        if bridge_server is not None:
            bridge_server.should_exit = True
        if bridge_publisher is not None:
            bridge_publisher.close()
        pose_subscriber.close()
        cloud_subscriber.close()
        feed.container.clear()
    return 0


def cmd_demo(config: ProtocolConfig, args: argparse.Namespace) -> int:
    interfaces = config.multicast_interfaces
    if args.scenario == "cloud":
        with PointCloudPublisher(config.point_cloud_endpoint, interfaces) as publisher:
            demo.run_cloud(publisher, cycles=args.cycles)
        return 0

    with PosePublisher(config.pose_endpoint, interfaces) as publisher:
        if args.scenario == "bounce":
            demo.run_bounce(
                publisher,
                cycles=args.cycles if args.cycles is not None else 4,
                interval=config.publish_interval,
            )
        else:
            demo.run_rotate(
                publisher, cycles=args.cycles, interval=config.publish_interval
            )
    return 0


COMMANDS = {"listen": cmd_listen, "watch": cmd_watch, "demo": cmd_demo}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _resolve_interfaces(args)

    try:
        config, overrides = create_config_from_args(args)
    except ConfigurationError as e:
        for error in e.errors:
            print(f"ERROR: {error}", file=sys.stderr)
        return 2
    except (FileNotFoundError, ValueError) as e:
        # tomllib.TOMLDecodeError is a ValueError
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    configure_logging(
        log_dir=Path(config.log_dir) if config.log_dir else None,
        console_level=config.log_level_console,
        console_json=config.log_json_console,
        rotation=config.log_rotation,
        retention=config.log_retention,
    )

    logger.info("=" * 60)
    logger.info(f"pose-publisher {get_version()} {args.command}")
    logger.info(f"  Poses: {config.pose_address}")
    logger.info(f"  Point clouds: {config.point_cloud_address}")
    logger.info(f"  Commands: {config.command_address}")
    if config.multicast_interfaces:
        logger.info(f"  Interfaces: {', '.join(config.multicast_interfaces)}")
    for override in overrides:
        logger.info(
            f"  Config override: {override.key} = {override.new_value!r} "
            f"(default {override.default_value!r})"
        )
    logger.info("=" * 60)

    try:
        return COMMANDS[args.command](config, args)
    except NotMulticastError as e:
        logger.error(str(e))
        return 2
    except PosePublisherError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        shutdown_logging()


def cli_main() -> None:
    """Console script entry point referenced in pyproject.toml."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    cli_main()
