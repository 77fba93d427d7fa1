"""
LoopRoute CLI entrypoint.

This CLI is intended for quick local demos and debugging without an HTTP client.
It delegates all loop logic to `looproute.planner.generate.generate_loop`.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from looproute.config.settings import get_settings
from looproute.core.logging import configure_logging
from looproute.domain.models import GeoPoint, LoopRequest
from looproute.errors import LoopRouteError
from looproute.planner.generate import generate_loop


def _parse_override_pairs(pairs: list[str]) -> dict[str, Any]:
    """Parse `section.key=VALUE` arguments into a nested overrides dict (VALUE is JSON or text)."""
    out: dict[str, Any] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Invalid --set '{pair}', expected section.key=VALUE")
        dotted, raw = pair.split("=", 1)
        try:
            value: Any = json.loads(raw)
        except ValueError:
            value = raw
        node = out
        parts = dotted.strip().split(".")
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
    return out


def _cmd_generate(args: argparse.Namespace) -> int:
    """Handle the `generate` subcommand."""
    settings = get_settings()

    mandatory_point = None
    if args.via_lat is not None or args.via_lon is not None:
        if args.via_lat is None or args.via_lon is None:
            print("error: --via-lat and --via-lon must be given together", file=sys.stderr)
            return 2
        mandatory_point = GeoPoint(lat=float(args.via_lat), lon=float(args.via_lon))

    try:
        request = LoopRequest(
            start=GeoPoint(lat=float(args.lat), lon=float(args.lon)),
            target_distance_km=float(args.km),
            mode=args.mode,
            mandatory_point=mandatory_point,
            mandatory_address=args.via_address,
            enhance=bool(args.enhance),
            seed=args.seed,
            settings_overrides=_parse_override_pairs(args.set) or None,
        )
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    try:
        result = generate_loop(request, settings=settings)
    except LoopRouteError as exc:
        print(f"error [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2))
        return 0

    km = result.total_distance_m / 1000
    minutes = round(result.total_duration_s / 60)
    print(f"{result.mode.value} loop: {km:.2f} km, approx. {minutes} min ({result.meta.get('strategy')})")
    for i, p in enumerate(result.waypoints, start=1):
        print(f"  {i}. {p.lat:.6f},{p.lon:.6f}")
    print(result.maps_url)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the LoopRoute CLI."""
    parser = argparse.ArgumentParser(prog="looproute")
    parser.add_argument(
        "--log-level",
        default=None,
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override LOOPROUTE_LOG_LEVEL for this run",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a round-trip loop of roughly the given length.")
    gen.add_argument("--lat", required=True, type=float)
    gen.add_argument("--lon", required=True, type=float)
    gen.add_argument("--km", required=True, type=float, help="Target round-trip distance in km")
    gen.add_argument("--mode", default="cycling", choices=["cycling", "walking"])
    gen.add_argument("--via-lat", type=float, default=None, help="Mandatory stop latitude")
    gen.add_argument("--via-lon", type=float, default=None, help="Mandatory stop longitude")
    gen.add_argument("--via-address", type=str, default=None, help="Mandatory stop as an address")
    gen.add_argument("--enhance", action="store_true", help="Ask the LLM enhancer to polish waypoints")
    gen.add_argument("--seed", type=int, default=None, help="Seed the random search (reproducible runs)")
    gen.add_argument(
        "--set",
        action="append",
        default=[],
        help="Per-run settings override, e.g. search.main_attempts=40 (repeatable)",
    )
    gen.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    gen.set_defaults(func=_cmd_generate)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m looproute.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
