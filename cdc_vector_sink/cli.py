# cdc_vector_sink/cli.py
# SPDX-License-Identifier: Apache-2.0
"""
cdc-vector-sink CLI

Inspect or apply a JSON Lines file of CDC records against a Pinecone index.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from contextlib import contextmanager
from typing import IO, Iterator, List, Optional

from cdc_vector_sink.batches import build_batches, plan_summary
from cdc_vector_sink.destination import Destination
from cdc_vector_sink.errors import VectorSinkError
from cdc_vector_sink.namespaces import resolver_for
from cdc_vector_sink.records import Record, read_records

logger = logging.getLogger(__name__)


@contextmanager
def _open_input(path: str) -> Iterator[IO[str]]:
    if path == "-":
        yield sys.stdin
        return
    with open(path, "r", encoding="utf-8") as fh:
        yield fh


def _load(path: str) -> List[Record]:
    with _open_input(path) as fh:
        return list(read_records(fh))


def _fail(exc: VectorSinkError) -> int:
    print(json.dumps(exc.asdict(), default=str), file=sys.stderr)
    return 1


def _cmd_plan(args: argparse.Namespace) -> int:
    records = _load(args.file)
    resolver = resolver_for(args.namespace)
    batches = build_batches(records, resolver.resolve, metadata_prefix=args.metadata_prefix)
    print(json.dumps(plan_summary(batches), indent=2))
    return 0


def _cmd_apply(args: argparse.Namespace) -> int:
    records = _load(args.file)

    cfg = {"host": args.host, "namespace": args.namespace or ""}
    if args.api_key:
        cfg["apiKey"] = args.api_key
    if args.metadata_prefix:
        cfg["metadataPrefix"] = args.metadata_prefix
    if args.parallel_connect:
        cfg["parallelConnect"] = "true"

    dest = Destination()
    dest.configure(cfg)
    dest.open()
    try:
        written = dest.write(records)
    except VectorSinkError:
        try:
            dest.teardown()
        except VectorSinkError as close_exc:
            # The write failure is the one to report.
            logger.warning("teardown after failed write: %s", close_exc)
        raise
    try:
        dest.teardown()
    except VectorSinkError as exc:
        # Records were applied; report them alongside the close failure.
        exc.written = written
        raise

    print(json.dumps({"written": written}))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="cdc-vector-sink",
        description="Write CDC records to a Pinecone index, in order",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cdc-vector-sink plan changes.jsonl
  cdc-vector-sink plan --namespace '{{ metadata["table"] }}' changes.jsonl
  cat changes.jsonl | cdc-vector-sink apply --host my-index.svc.pinecone.io -

The API key is read from --api-key or $PINECONE_API_KEY.
        """.strip(),
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
        help="command to execute",
        metavar="COMMAND",
    )

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("file", help="JSON Lines record file, or - for stdin")
        p.add_argument(
            "--namespace",
            default="",
            help="Static namespace or template; empty routes by opencdc.collection",
        )
        p.add_argument(
            "--metadata-prefix",
            default=None,
            help="Only keep metadata keys with this prefix (stripped)",
        )

    plan_parser = subparsers.add_parser(
        "plan", help="Print the batch plan for a record file (no network)"
    )
    add_common(plan_parser)
    plan_parser.set_defaults(func=_cmd_plan)

    apply_parser = subparsers.add_parser(
        "apply", help="Write a record file to the index"
    )
    add_common(apply_parser)
    apply_parser.add_argument("--host", required=True, help="Pinecone index host")
    apply_parser.add_argument("--api-key", default=None, help="Pinecone API key")
    apply_parser.add_argument(
        "--parallel-connect",
        action="store_true",
        help="Open new namespace connections concurrently",
    )
    apply_parser.set_defaults(func=_cmd_apply)

    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except VectorSinkError as exc:
        return _fail(exc)
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
