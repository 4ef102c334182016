"""pystat - command line entry point."""

import argparse
import logging
import signal
import sys
import threading
from dataclasses import replace
from queue import Queue
from typing import Sequence, TextIO

from pystat.models import SamplePair, Settings, normalize_device, parse_duration
from pystat.monitor import MetricsError, PsutilProvider, SystemSampler, discover_devices
from pystat.report import build_record, render_record, render_total

logger = logging.getLogger(__name__)

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def parse_bool(text: str) -> bool:
    """Parse a boolean flag value the way Go's strconv.ParseBool does."""
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def duration_arg(text: str) -> float:
    """argparse type for Go-style durations ("1s", "500ms", "1h30m")."""
    try:
        return parse_duration(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _add_bool(parser: argparse.ArgumentParser, name: str, dest: str, default: bool, help: str) -> None:
    parser.add_argument(
        f"-{name}",
        f"--{name}",
        dest=dest,
        type=parse_bool,
        nargs="?",
        const=True,
        default=default,
        metavar="BOOL",
        help=help,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pystat",
        description=(
            "Record CPU busy states, device utilization and memory (+ swap) usage "
            "at a fixed interval, one line per sample."
        ),
    )
    parser.add_argument(
        "-for",
        "--for",
        dest="duration",
        type=duration_arg,
        default=365 * 24 * 3600.0,
        metavar="DURATION",
        help="how long to poll until exiting (default 8760h)",
    )
    parser.add_argument(
        "-poll",
        "--poll",
        dest="poll",
        type=duration_arg,
        default=1.0,
        metavar="DURATION",
        help="how often to poll (default 1s)",
    )
    _add_bool(parser, "cpu", "show_cpu", True, "show cpu (default true)")
    _add_bool(parser, "disk", "show_disk", True, "show disk (default true)")
    _add_bool(parser, "mem", "show_mem", True, "show memory (default true)")
    _add_bool(parser, "swap", "show_swap", False, "show swap (default false)")
    _add_bool(parser, "total", "show_total", False, "show total at end (default false)")
    _add_bool(parser, "rate", "disk_rate", False, "report disk read/write in KiB/s instead of KiB")
    _add_bool(parser, "verbose", "verbose", False, "log diagnostics to stderr")
    parser.add_argument(
        "-device",
        "--device",
        dest="devices",
        action="append",
        default=[],
        metavar="NAME",
        help="name of disk, repeatable (default: all mounted partitions)",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse the command line into an immutable Settings."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.poll <= 0:
        parser.error("-poll must be positive")

    devices: list[str] = []
    for name in args.devices:
        name = normalize_device(name)
        if name not in devices:
            devices.append(name)

    return Settings(
        duration=args.duration,
        poll=args.poll,
        show_cpu=args.show_cpu,
        show_disk=args.show_disk,
        show_mem=args.show_mem,
        show_swap=args.show_swap,
        show_total=args.show_total,
        devices=tuple(devices),
        disk_rate=args.disk_rate,
        verbose=args.verbose,
    )


def configure_logging(verbose: bool) -> None:
    """Send diagnostics to stderr so stdout only carries records."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def run(
    settings: Settings,
    provider: PsutilProvider | None = None,
    out: TextIO | None = None,
    install_signals: bool = True,
) -> None:
    """
    Sample until the duration elapses or SIGINT/SIGTERM arrives.

    Prints one record per tick, then the run average when show_total is set.

    Raises:
        MetricsError: If the provider fails at any point.
    """
    out = out if out is not None else sys.stdout
    provider = provider or PsutilProvider()

    interrupted = threading.Event()
    sampler: SystemSampler | None = None

    def _on_signal(signum, frame) -> None:
        logger.info("Received %s, finishing", signal.Signals(signum).name)
        interrupted.set()
        if sampler is not None:
            sampler.stop()

    previous_handlers = {}
    try:
        if install_signals:
            for signum in (signal.SIGINT, signal.SIGTERM):
                previous_handlers[signum] = signal.signal(signum, _on_signal)

        if settings.show_disk and not settings.devices:
            settings = replace(settings, devices=discover_devices(provider))

        update_queue: "Queue[SamplePair | None]" = Queue()
        sampler = SystemSampler(update_queue, settings, provider=provider)
        if interrupted.is_set():
            logger.info("Interrupted before sampling started")
            return

        sampler.start()
        # start() re-arms the stop event, so a signal caught during it is replayed
        if interrupted.is_set():
            sampler.stop()
        while True:
            pair = update_queue.get()
            if pair is None:
                break
            print(render_record(build_record(pair, settings)), file=out, flush=True)
        sampler.join()
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)

    if sampler.error is not None:
        raise sampler.error
    if settings.show_total:
        print(render_total(sampler.totals(), settings), file=out, flush=True)


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for pystat."""
    settings = parse_args(argv)
    configure_logging(settings.verbose)
    try:
        run(settings)
    except MetricsError as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
