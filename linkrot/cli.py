from __future__ import annotations

import argparse
import logging
import sys

from linkrot.config import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, HTTP_METHODS, ProbeConfig
from linkrot.dispatch import LinkChecker
from linkrot.errors import LinkrotError
from linkrot.probe import ProbeClient
from linkrot.report import Reporter
from linkrot.walk import resolve_target

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linkrot",
        description="Check the http(s) links of markdown files concurrently.",
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("-file", "--file", help="path of markdown file")
    target.add_argument("-dir", "--dir", help="path of dir containing markdown files")
    parser.add_argument(
        "--skip-tls", action="store_true", help="ignore invalid TLS/SSL certificates"
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help="seconds allowed to connect and for each read; not a total deadline (default: %(default)s)",
    )
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="impersonate an agent")
    parser.add_argument(
        "--http-method",
        type=str.upper,
        choices=HTTP_METHODS,
        default="GET",
        help="HEAD (faster, less accurate) or GET (slower, trustworthy)",
    )
    parser.add_argument(
        "--follow-redirects",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="follow 3xx responses (default: yes)",
    )
    parser.add_argument(
        "--concurrency", type=int, default=None, help="max probes in flight (default: unbounded)"
    )
    parser.add_argument(
        "--no-dns-cache", dest="dns_cache", action="store_false", help="resolve every connection afresh"
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug")
    return parser


def setup_logging(verbosity: int):
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level, format="%(asctime)s - %(levelname)s - %(message)s", stream=sys.stderr
    )


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = ProbeConfig.from_args(args)
        target = resolve_target(file=args.file, directory=args.dir)
    except LinkrotError as e:
        print(f"err: {e}", file=sys.stderr)
        return 1

    reporter = Reporter()
    with ProbeClient(config) as client:
        checker = LinkChecker(client, concurrency=config.concurrency)
        try:
            reporter.report_all(checker.check(target))
        except LinkrotError as e:
            print(f"err: {e}", file=sys.stderr)
            return 1

    logger.info("checked %d links: %d answered, %d failed", reporter.lines, reporter.ok, reporter.errors)
    return 0
