from __future__ import annotations

import argparse
import sys
from typing import Sequence


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="carrier_sync", description="Application entrypoint")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Process new orders once and write the run summary")
    run_parser.add_argument("--run-id", dest="run_id", type=str, default=None, help="Override generated run id")
    run_parser.add_argument("--carrier", dest="carrier", type=str, default=None, help="Carrier to assign")
    run_parser.add_argument("--quota", dest="quota", type=int, default=None, help="Stop after N processed orders")
    run_parser.add_argument("--orders", dest="orders", type=str, default=None, help="Comma separated order ids")

    return parser


def _run(args: argparse.Namespace) -> int:
    from carrier_sync.admin.main import run as run_once

    run_args: list[str] = []
    if args.run_id:
        run_args.extend(["--run-id", args.run_id])
    if args.carrier is not None:
        run_args.extend(["--carrier", args.carrier])
    if args.quota is not None:
        run_args.extend(["--quota", str(args.quota)])
    if args.orders is not None:
        run_args.extend(["--orders", args.orders])
    return run_once(run_args)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    parsed = parser.parse_args(list(argv) if argv is not None else sys.argv[1:])

    if parsed.command == "run":
        return _run(parsed)

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
