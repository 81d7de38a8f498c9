import argparse
import contextlib
import logging
import os
import sys
import tempfile

from .core import (
    DEFAULT_PREFIX,
    DEFAULT_TIMEOUT,
    VERSION,
    StraceCopyError,
    record_trace,
    replicate_logs,
    setup_logging,
)
from .manifest import build_manifest, get_manifest_summary, write_manifest

logger = logging.getLogger(__name__)

ABOUT = "Copy the files needed for a program, from one prefix to another, using strace."
RECORDED_LOG = "<recorded>"

EPILOG = """\
To create the required strace log file run (see man strace for details):

strace -o <log file> -ff -e trace=file,process <command line ...>

or let strace-copy run it for you with --command.
"""


def build_parser():
    parser = argparse.ArgumentParser(
        prog="strace-copy",
        description=ABOUT,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Report every copied file and created link.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--prefix", default=DEFAULT_PREFIX, help=f"Source prefix (default: {DEFAULT_PREFIX}).")
    parser.add_argument("--command", metavar="CMD", help="Trace this command and copy what it uses.")
    parser.add_argument("--trace-output", metavar="FILE", help="Keep the trace recorded by --command in FILE.")
    parser.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT, metavar="SECONDS",
                        help=f"Time limit for --command (default: {DEFAULT_TIMEOUT}).")
    parser.add_argument("--dry-run", action="store_true", help="Report what would be copied without writing anything.")
    parser.add_argument("--manifest", metavar="FILE", help="Write a YAML summary of the replicated tree to FILE.")
    parser.add_argument("destination_prefix", help="Destination prefix.")
    parser.add_argument("strace_logs", nargs="*", help="Input strace log files.")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.strace_logs and not args.command:
        parser.error("at least one strace log or --command is required.")

    setup_logging(args.verbose)

    logs = list(args.strace_logs)
    # Temporary traces are deleted before the manifest is written
    manifest_logs = list(logs)
    recorded = None
    try:
        if args.command:
            recorded = args.trace_output
            if recorded is None:
                fd, recorded = tempfile.mkstemp(prefix="strace-copy-", suffix=".log")
                os.close(fd)
            record_trace(args.command, recorded, timeout=args.timeout)
            logs.append(recorded)
            manifest_logs.append(args.trace_output or RECORDED_LOG)

        results = replicate_logs(logs, args.prefix, args.destination_prefix, dry_run=args.dry_run)
    except StraceCopyError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if recorded is not None and args.trace_output is None:
            with contextlib.suppress(OSError):
                os.remove(recorded)

    manifest = build_manifest(results, args.prefix, args.destination_prefix, logs=manifest_logs)
    logger.info("Replication complete.\n%s", get_manifest_summary(manifest))

    if args.manifest:
        try:
            write_manifest(manifest, args.manifest)
        except OSError as e:
            print(f"Error: Cannot write manifest {args.manifest}: {e}", file=sys.stderr)
            return 1
        logger.info("Saved manifest to %s", args.manifest)

    return 0


if __name__ == "__main__":
    sys.exit(main())
