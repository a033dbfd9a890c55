#!/usr/bin/env python3
"""
RDProbe - CLI Module
Copyright (C) 2026  Dorin Badea
GPLv3 License

Command-line interface: parse targets, run the probes of one scan run on a
thread pool and print the results.
"""

import argparse
import json
import logging
import sys
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from rdprobe.core.decoders import load_decoder
from rdprobe.core.dialer import TCPDialer
from rdprobe.core.errors import DecoderLoadError
from rdprobe.core.memo import FailurePolicy
from rdprobe.core.probes import RDPProber
from rdprobe.core.runs import DialerRegistry
from rdprobe.utils.config import get_probe_settings, update_persistent_defaults
from rdprobe.utils.constants import (
    DEFAULT_RDP_PORT,
    MAX_PROBE_TIMEOUT,
    MAX_THREADS,
    MIN_PROBE_TIMEOUT,
    MIN_THREADS,
    VERSION,
)
from rdprobe.utils.logging_setup import setup_logging
from rdprobe.utils.targets import parse_port_spec, parse_target_tokens

logger = logging.getLogger("rdprobe.cli")

EXIT_OK = 0
EXIT_PROBE_ERRORS = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def parse_arguments(argv: Optional[Sequence[str]] = None):
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="rdprobe",
        description=f"RDProbe v{VERSION} - RDP presence and authentication fingerprinting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Presence probe on the default port
  rdprobe 10.0.0.5 --decoder mydecoders.rdp:Decoder

  # Presence and authentication, several hosts and ports
  rdprobe 10.0.0.5,10.0.0.6:3390 [fe80::1]:3389 --auth --json
""",
    )
    parser.add_argument(
        "targets",
        nargs="+",
        metavar="TARGET",
        help="host, host:port or [ipv6]:port (comma-separated lists allowed)",
    )
    parser.add_argument(
        "--port",
        "-p",
        default=str(DEFAULT_RDP_PORT),
        help=f"Ports for targets given without one, e.g. 3389,3390-3392 (default: {DEFAULT_RDP_PORT})",
    )
    parser.add_argument(
        "--auth",
        action="store_true",
        help="Also check whether the RDP service requires authentication",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-probe dial and handshake timeout in seconds (default: 5)",
    )
    parser.add_argument(
        "--threads",
        "-j",
        type=int,
        default=None,
        help=f"Concurrent probes ({MIN_THREADS}-{MAX_THREADS})",
    )
    parser.add_argument(
        "--decoder",
        default=None,
        metavar="MODULE:ATTR",
        help="RDP decoder to use (also RDPROBE_DECODER or config file)",
    )
    parser.add_argument(
        "--retry-failures",
        action="store_true",
        help="Re-probe targets whose probe failed instead of reusing the failure",
    )
    parser.add_argument(
        "--rate-limit",
        type=float,
        default=None,
        help="Minimum seconds between connection attempts",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=None,
        metavar="ADDR",
        help="IP, CIDR or hostname never to connect to (repeatable)",
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument(
        "--save-defaults",
        action="store_true",
        help="Persist the effective probe settings as defaults",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug output on console")
    parser.add_argument("--version", "-V", action="version", version=f"RDProbe v{VERSION}")
    return parser.parse_args(argv)


def resolve_settings(args) -> Dict[str, Any]:
    """Merge persisted settings with command-line overrides."""
    settings = get_probe_settings()
    if args.timeout is not None:
        if not (MIN_PROBE_TIMEOUT <= args.timeout <= MAX_PROBE_TIMEOUT):
            raise ValueError(
                f"--timeout must be between {MIN_PROBE_TIMEOUT} and {MAX_PROBE_TIMEOUT}"
            )
        settings["probe_timeout"] = args.timeout
    if args.threads is not None:
        if not (MIN_THREADS <= args.threads <= MAX_THREADS):
            raise ValueError(f"--threads must be between {MIN_THREADS} and {MAX_THREADS}")
        settings["threads"] = args.threads
    if args.decoder:
        settings["decoder"] = args.decoder
    if args.retry_failures:
        settings["failure_policy"] = FailurePolicy.RETRY.value
    if args.rate_limit is not None:
        if args.rate_limit < 0:
            raise ValueError("--rate-limit must be >= 0")
        settings["rate_limit"] = args.rate_limit
    if args.exclude:
        settings["exclude"] = list(settings["exclude"]) + list(args.exclude)
    return settings


def probe_target(prober: RDPProber, run_id: str, host: str, port: int, auth: bool) -> Dict:
    """Run the requested probes for one target and collect a result row."""
    row: Dict[str, Any] = {"host": host, "port": port, "error": None}
    try:
        row.update(prober.probe_presence(run_id, host, port).to_dict())
        if auth and row.get("is_rdp"):
            row.update(prober.probe_auth(run_id, host, port).to_dict())
    except Exception as exc:
        logger.debug("probe %s:%s failed", host, port, exc_info=True)
        row["error"] = str(exc) or exc.__class__.__name__
    return row


def run_probes(
    prober: RDPProber,
    run_id: str,
    targets: List[Tuple[str, int]],
    *,
    auth: bool = False,
    threads: int = 1,
    console: Optional[Console] = None,
) -> List[Dict]:
    """Probe every target concurrently; rows come back in target order."""
    rows: Dict[Tuple[str, int], Dict] = {}
    executor = ThreadPoolExecutor(max_workers=max(1, threads))
    try:
        futures = {
            executor.submit(probe_target, prober, run_id, host, port, auth): (host, port)
            for host, port in targets
        }
        with Progress(
            SpinnerColumn(),
            TextColumn("[cyan]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
            disable=console is None,
        ) as progress:
            task = progress.add_task("Probing", total=len(futures))
            for fut in as_completed(futures):
                rows[futures[fut]] = fut.result()
                progress.advance(task)
    except KeyboardInterrupt:
        # Unblock in-flight probes before waiting for the workers
        prober.cancel_run(run_id)
        executor.shutdown(wait=True, cancel_futures=True)
        raise
    executor.shutdown(wait=True)
    return [rows[t] for t in targets]


def render_table(rows: List[Dict], auth: bool) -> Table:
    table = Table(title="RDP probe results")
    table.add_column("Target")
    table.add_column("RDP")
    table.add_column("OS")
    if auth:
        table.add_column("Auth required")
        table.add_column("Service info")
    table.add_column("Error", style="red")

    for row in rows:
        target = f"{row['host']}:{row['port']}"
        if row.get("error"):
            cells = [target, "-", ""]
            if auth:
                cells += ["-", ""]
            table.add_row(*cells, row["error"])
            continue
        cells = [target, "yes" if row.get("is_rdp") else "no", row.get("os") or ""]
        if auth:
            info = row.get("service_info")
            if "auth" not in row:
                cells += ["-", ""]
            else:
                cells += [
                    "yes" if row.get("auth") else "no",
                    json.dumps(info, sort_keys=True) if info else "",
                ]
        table.add_row(*cells, "")
    return table


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point for RDProbe CLI."""
    args = parse_arguments(argv)
    setup_logging(verbose=args.verbose)
    console = Console(stderr=True)

    try:
        settings = resolve_settings(args)
        default_ports = parse_port_spec(args.port)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(EXIT_USAGE)

    if args.save_defaults:
        saved = update_persistent_defaults(
            probe_timeout=settings["probe_timeout"],
            failure_policy=settings["failure_policy"],
            threads=settings["threads"],
            decoder=settings["decoder"],
            rate_limit=settings["rate_limit"],
            exclude=settings["exclude"],
        )
        if not saved:
            console.print("[yellow]Warning:[/yellow] could not save defaults")

    if not settings["decoder"]:
        console.print(
            "[red]Error:[/red] no RDP decoder configured (use --decoder or RDPROBE_DECODER)"
        )
        sys.exit(EXIT_USAGE)
    try:
        decoder = load_decoder(settings["decoder"])
    except DecoderLoadError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(EXIT_USAGE)

    targets, invalid = parse_target_tokens(args.targets, default_ports)
    for token in invalid:
        console.print(f"[yellow]Skipping invalid target:[/yellow] {token}")
    if not targets:
        console.print("[red]Error:[/red] no valid targets")
        sys.exit(EXIT_USAGE)

    run_id = uuid.uuid4().hex
    registry = DialerRegistry()
    registry.register(
        run_id, TCPDialer(rate_limit=settings["rate_limit"], exclude=settings["exclude"])
    )
    prober = RDPProber(
        registry,
        decoder,
        timeout=settings["probe_timeout"],
        failure_policy=FailurePolicy.parse(settings["failure_policy"]),
    )
    logger.info("Run %s: %d targets, auth=%s", run_id, len(targets), args.auth)

    try:
        rows = run_probes(
            prober,
            run_id,
            targets,
            auth=args.auth,
            threads=settings["threads"],
            console=None if args.json else console,
        )
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
    finally:
        prober.end_run(run_id)
        registry.unregister(run_id)

    if args.json:
        print(json.dumps(rows, indent=2))
    else:
        Console().print(render_table(rows, args.auth))

    sys.exit(EXIT_PROBE_ERRORS if any(r.get("error") for r in rows) else EXIT_OK)


if __name__ == "__main__":
    main()
