#!/usr/bin/env python3
"""
Navigation copilot command-line tool.

Plans and ranks routes, reports traffic alerts and heatmaps around a point,
and replays recorded GPX tracks through a live navigation session.

Requirements:
    pip install requests shapely pyproj gpxpy python-dotenv

"""

from collections import Counter
from typing import List, Optional
import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv
from gpxpy import gpx

from . import __version__
from . import geodesy
from .backend import GoogleMapsClient
from .config import NavigationConfig
from .events import (
    EtaDistanceUpdated,
    HeatmapUpdated,
    RerouteTriggered,
    RouteSetUpdated,
    SessionStateChanged,
    StepAdvanced,
)
from .export import feature_collection, write_geojson
from .file_utils import generate_output_filename
from .formatting import format_distance, format_duration
from .geometry import GeoPoint
from .heatmap import TrafficHeatmapSampler
from .metrics import log_metrics
from .models import TrafficIntensity
from .optimizer import RankedRoute, RouteOptimizer
from .places import PlaceTrafficAnalyzer
from .route_provider import RouteProvider
from .session import REROUTE, NavigationSession
from .track import load_track

# Configure logging
logger = logging.getLogger("navcopilot")


def parse_point(value: str) -> GeoPoint:
    """argparse type for LAT,LNG coordinates."""
    try:
        return GeoPoint.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command-line argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Hyperlocal navigation copilot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set logging level (default: WARNING)",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Output structured metrics after processing",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"navcopilot {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    route_parser = subparsers.add_parser("route", help="Fetch and rank routes between two points")
    route_parser.add_argument("origin", type=parse_point, help="Start as LAT,LNG")
    route_parser.add_argument("destination", type=parse_point, help="Destination as LAT,LNG")
    route_parser.add_argument(
        "--no-alternatives",
        action="store_true",
        help="Only request the primary route",
    )
    route_parser.add_argument(
        "--no-alerts",
        action="store_true",
        help="Skip the nearby place search used to penalize congested routes",
    )
    route_parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write the ranked routes and alerts to this GeoJSON file",
    )

    alerts_parser = subparsers.add_parser("alerts", help="Traffic alerts around a point")
    alerts_parser.add_argument("center", type=parse_point, help="Center as LAT,LNG")
    alerts_parser.add_argument(
        "--radius",
        type=float,
        default=None,
        help="Place search radius in meters (default: 3000)",
    )

    heatmap_parser = subparsers.add_parser("heatmap", help="Sample live traffic around a point")
    heatmap_parser.add_argument("center", type=parse_point, help="Center as LAT,LNG")
    heatmap_parser.add_argument(
        "--radius",
        type=float,
        default=None,
        help="Sampling radius in meters (default: 3000)",
    )
    heatmap_parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write the sampled points to this GeoJSON file",
    )

    simulate_parser = subparsers.add_parser(
        "simulate", help="Replay a GPX track through a navigation session"
    )
    simulate_parser.add_argument("filename", type=str, help="GPX track to replay")
    simulate_parser.add_argument("destination", type=parse_point, help="Destination as LAT,LNG")
    simulate_parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output GeoJSON file (default: auto-generated based on input filename)",
    )
    return parser


def setup_logging(args: argparse.Namespace) -> None:
    """Setup logging configuration."""
    if hasattr(sys.stdout, "reconfigure") and sys.stdout.encoding != "utf-8":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            if hasattr(sys.stderr, "reconfigure") and sys.stderr.encoding != "utf-8":
                sys.stderr.reconfigure(encoding="utf-8")
            logger.debug("Reconfigured stdout and stderr to UTF-8 encoding.")
        except Exception as e:
            logger.debug(f"Could not reconfigure stdout/stderr to UTF-8: {e}")
    level = getattr(logging, args.log_level)

    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
    )

    # Create console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    # Configure the root logger so all modules inherit the configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # Suppress overly verbose third-party logging
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def print_ranked_routes(ranked_routes: List[RankedRoute]) -> None:
    """Print ranked routes, best first, one line per route."""
    if not ranked_routes:
        print("No routes found")
        return

    print(f"Routes ({len(ranked_routes)}):")
    for rank, ranked in enumerate(ranked_routes, start=1):
        route = ranked.route
        summary = route.summary or "unnamed"
        fallback = " [fallback]" if route.is_fallback else ""
        print(
            f"{rank}. {summary}{fallback}: {format_distance(route.distance)}, "
            f"{format_duration(ranked.estimated_time_with_traffic)} with traffic, "
            f"score {ranked.score:.3f} - {ranked.justification}"
        )
        for alert in ranked.alerts:
            print(f"     ! {alert.message} ({alert.severity_level})")


def describe_event(event: object) -> Optional[str]:
    """One-line description of a session event, or None for events not worth printing."""
    if isinstance(event, SessionStateChanged):
        return f"state: {event.previous} -> {event.current}"
    if isinstance(event, RouteSetUpdated):
        if not event.routes:
            return None
        best = event.routes[event.selected_index]
        return (
            f"route: {format_distance(best.route.distance)}, "
            f"{format_duration(best.route.duration)} ({best.justification})"
        )
    if isinstance(event, StepAdvanced):
        return f"step {event.step_index + 1}: {event.step.instruction} ({event.step.distance_text})"
    if isinstance(event, RerouteTriggered):
        if event.deviation is not None:
            return f"reroute: {event.reason}, {format_distance(event.deviation)} off route"
        return f"reroute: {event.reason}"
    return None


def build_session(client: GoogleMapsClient, config: NavigationConfig) -> NavigationSession:
    return NavigationSession(
        route_provider=RouteProvider(client, config),
        optimizer=RouteOptimizer(config),
        analyzer=PlaceTrafficAnalyzer(client, config),
        heatmap_sampler=TrafficHeatmapSampler(client, config),
        config=config,
    )


async def run_route(args: argparse.Namespace, client: GoogleMapsClient, config: NavigationConfig) -> None:
    provider = RouteProvider(client, config)
    routes = await provider.fetch_routes(
        args.origin, args.destination, want_alternatives=not args.no_alternatives
    )
    alerts = []
    if not args.no_alerts:
        alerts = await PlaceTrafficAnalyzer(client, config).alerts_for_trip(
            args.origin, args.destination
        )
    ranked = RouteOptimizer(config).rank(routes, alerts)
    print_ranked_routes(ranked)

    if args.output:
        write_geojson(
            feature_collection(
                ranked,
                alerts,
                corridor_half_width=config.corridor_half_width,
                corridor_max_vertices=config.corridor_max_vertices,
            ),
            args.output,
        )
        print(f"Wrote {args.output}")


async def run_alerts(args: argparse.Namespace, client: GoogleMapsClient, config: NavigationConfig) -> None:
    analyzer = PlaceTrafficAnalyzer(client, config)
    places = await analyzer.find_nearby(args.center, args.radius)
    alerts = analyzer.analyze_alerts(args.center, places)

    print(f"Nearby places: {len(places)}")
    if not alerts:
        print("No traffic alerts")
        return
    print(f"Traffic alerts ({len(alerts)}):")
    for alert in alerts:
        print(f"  [{alert.severity_level:6}] {alert.message} (severity {alert.severity:.2f})")


async def run_heatmap(args: argparse.Namespace, client: GoogleMapsClient, config: NavigationConfig) -> None:
    sampler = TrafficHeatmapSampler(client, config)
    sample = await sampler.sample_area(args.center, args.radius)

    print(f"Traffic probes: {len(sample.points)}/{sample.probes_attempted} succeeded")
    counts = Counter(point.intensity for point in sample.points)
    for intensity in TrafficIntensity:
        print(f"  {str(intensity):9} {counts.get(intensity, 0)}")
    average = sample.average_intensity
    print(f"Average intensity: {average if average is not None else 'unknown'}")

    if args.output:
        write_geojson(feature_collection(heatmap=sample), args.output)
        print(f"Wrote {args.output}")


async def run_simulation(
    args: argparse.Namespace,
    client: GoogleMapsClient,
    config: NavigationConfig,
    output_filename: str,
) -> NavigationSession:
    track = load_track(args.filename)
    session = build_session(client, config)

    latest_routes: List[RankedRoute] = []
    latest_alerts: list = []

    def on_event(event: object) -> None:
        if isinstance(event, RouteSetUpdated):
            latest_routes[:] = event.routes[event.selected_index :] + event.routes[: event.selected_index]
            latest_alerts[:] = event.alerts
        message = describe_event(event)
        if message:
            print(message)

    session.events.subscribe(on_event)

    if not await session.set_destination(args.destination, origin=track[0].position):
        raise RuntimeError("Could not plan a route to the destination")
    session.start_navigation()

    previous = None
    last_update: Optional[EtaDistanceUpdated] = None
    for point in track:
        heading = None
        if previous is not None and previous != point.position:
            heading = geodesy.bearing(previous, point.position)
        update = session.on_position_update(point.position, heading)
        if update is not None:
            last_update = update
        previous = point.position

        # Let a triggered reroute finish before replaying the next fix
        await session.scheduler.wait(REROUTE)
        if session.state.is_terminal:
            break

    if last_update is not None:
        print(
            f"remaining: {format_distance(last_update.remaining_distance)}, "
            f"eta {format_duration(last_update.eta)}"
        )
    print(f"final state: {session.state}")
    if session.is_active:
        session.stop()

    write_geojson(
        feature_collection(latest_routes, latest_alerts, track=[p.position for p in track]),
        output_filename,
    )
    print(f"Wrote {output_filename}")
    return session


def main(argv: Optional[List[str]] = None) -> None:
    """
    Parses command-line arguments and runs the requested subcommand.
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Setup logging
    setup_logging(args)
    load_dotenv()

    config = NavigationConfig.from_env()
    client = GoogleMapsClient(config)

    if args.command == "route":
        asyncio.run(run_route(args, client, config))
    elif args.command == "alerts":
        asyncio.run(run_alerts(args, client, config))
    elif args.command == "heatmap":
        asyncio.run(run_heatmap(args, client, config))
    elif args.command == "simulate":
        try:
            output_filename = args.output or generate_output_filename(args.filename)
            logger.debug(f"Output filename: {output_filename}")
        except (RuntimeError, ValueError):
            sys.exit(1)

        try:
            session = asyncio.run(run_simulation(args, client, config, output_filename))
        except FileNotFoundError:
            logger.error(f"GPX file not found: {args.filename}")
            sys.exit(1)
        except PermissionError:
            logger.error(f"Cannot read GPX file (permission denied): {args.filename}")
            sys.exit(1)
        except gpx.GPXException as e:
            logger.error(f"Invalid GPX file: {e}")
            sys.exit(1)
        except (RuntimeError, ValueError) as e:
            logger.error(str(e))
            sys.exit(1)

        log_metrics(session.metrics, args.metrics)


if __name__ == "__main__":
    main()
