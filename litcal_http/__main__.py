"""Command line entry point for the Liturgical Calendar API client.

Usage
-----
    # Summarize the calendar index of the configured API
    python -m litcal_http calendars

    # Same, against another deployment
    python -m litcal_http calendars --api-url https://example.org/api/dev

    # GET any URL through the full pipeline
    python -m litcal_http get https://litcal.johnromanodorazio.com/api/dev/calendar/IT

Exit codes
----------
    0  success
    1  non-2xx response or invalid metadata
    2  bad configuration, network failure or open circuit
"""

from __future__ import annotations

import argparse
import logging
import sys

from litcal_core.config import ClientConfig
from litcal_core.errors import CircuitOpenError, ConfigurationError, MetadataError, TransportError
from litcal_http.composer import create_production_client
from litcal_http.metadata import MetadataCache


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="python -m litcal_http",
        description="Liturgical Calendar API client",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    sub = p.add_subparsers(dest="command", required=True)

    cal = sub.add_parser("calendars", help="Fetch and summarize the calendar index")
    cal.add_argument(
        "--api-url",
        default=None,
        help="API base URL (default: LITCAL_API_URL or the public dev API)",
    )

    get = sub.add_parser("get", help="GET a URL and print status and body")
    get.add_argument("url", help="Absolute URL to fetch")
    get.add_argument(
        "-H",
        "--header",
        action="append",
        default=[],
        metavar="NAME:VALUE",
        help="Request header, may be repeated",
    )
    return p.parse_args(argv)


def _parse_headers(raw: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for item in raw:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise ConfigurationError(f"Header must look like NAME:VALUE, got {item!r}")
        headers[name.strip()] = value.strip()
    return headers


def _cmd_calendars(config: ClientConfig, api_url: str | None) -> int:
    pipeline = create_production_client(config)
    try:
        index = MetadataCache(pipeline).fetch(api_url or config.api_url)
    finally:
        pipeline.close()

    print(f"National calendars ({len(index.national_calendars)}):")
    for national in index.national_calendars:
        locales = ",".join(national.locales)
        dioceses = len(national.dioceses or ())
        print(f"  {national.calendar_id:<6} locales={locales} dioceses={dioceses}")
    print(f"Diocesan calendars: {len(index.diocesan_calendars)}")
    print(f"Diocesan groups   : {len(index.diocesan_groups)}")
    print(f"Wider regions     : {len(index.wider_regions)}")
    print(f"Locales           : {len(index.locales)}")
    return 0


def _cmd_get(config: ClientConfig, url: str, headers: dict[str, str]) -> int:
    pipeline = create_production_client(config)
    try:
        response = pipeline.get(url, headers)
    finally:
        pipeline.close()

    print(f"HTTP {response.status_code}")
    for name, value in response.headers.items():
        shown = ", ".join(value) if isinstance(value, tuple) else value
        print(f"{name}: {shown}")
    print()
    print(response.text())
    return 0 if response.is_success else 1


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = ClientConfig.from_env()
        if args.command == "calendars":
            return _cmd_calendars(config, args.api_url)
        return _cmd_get(config, args.url, _parse_headers(args.header))
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    except MetadataError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except (TransportError, CircuitOpenError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
