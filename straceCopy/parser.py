import logging
import re

logger = logging.getLogger(__name__)

# Optional PID, syscall, args, return code and whatever strace appends after it
LINE_REGEX = re.compile(
    r"^(?:\[pid\s+(?P<bracket_pid>\d+)\]\s+|(?P<pid>\d+)\s+)?"  # Optional PID prefix
    r"(?P<syscall>[a-zA-Z0-9_]+)"                              # Syscall name
    r"\((?P<args>.*)\)"                                        # Arguments
    r"\s+=\s+(?P<result>\S+)"                                  # Return code
    r"(?P<trailing>.*)$"                                       # errno, comments...
)

RESULT_REGEX = re.compile(r"^[+-]?\d+$")

# These never carry a path and their return code is usually "?"
NOISE_SYSCALLS = {"exit", "exit_group"}

# Syscalls whose path argument we follow, and where it sits.
# openat/newfstatat take a directory fd first.
PATH_ARG_INDEX = {
    "openat": 1,
    "newfstatat": 1,
    "open": 0,
    "readlink": 0,
    "execve": 0,
}


def is_noise_syscall(syscall):
    """True for exit calls and strace's "syscall_0x..." placeholders."""
    return syscall.startswith("syscall") or syscall in NOISE_SYSCALLS


def split_args(args):
    """
    Splits a raw strace argument list on commas.

    Commas inside double-quoted strings do not split. Each piece is then
    trimmed of surrounding quotes and spaces. Brackets and braces are not
    tracked, so `{st_mode=S_IFREG|0644, ...}` still becomes two pieces;
    only the leading arguments matter for path extraction.
    """
    if not args.strip():
        return []

    pieces = []
    current = []
    in_quote = False
    escaped = False
    for char in args:
        if escaped:
            escaped = False
        elif char == "\\" and in_quote:
            escaped = True
        elif char == '"':
            in_quote = not in_quote
        elif char == "," and not in_quote:
            pieces.append("".join(current))
            current = []
            continue
        current.append(char)
    pieces.append("".join(current))

    return [piece.strip('" ') for piece in pieces]


def parse_strace_line(line):
    """
    Parses a single line of strace output into a structured dictionary.

    Returns None if the line is not a completed syscall line. A line that
    has the right shape but an unreadable return code is also rejected,
    with a warning.
    """
    match = LINE_REGEX.match(line.strip())
    if not match:
        return None

    syscall = match.group("syscall")
    result = match.group("result")
    if not RESULT_REGEX.match(result):
        if not is_noise_syscall(syscall):
            logger.warning("Skipping line with invalid return code %r: %s", result, line.strip())
        return None

    pid = match.group("pid") or match.group("bracket_pid")
    return {
        "pid": int(pid) if pid is not None else None,
        "syscall": syscall,
        "args": split_args(match.group("args")),
        "result": int(result),
        "trailing": match.group("trailing").strip(),
    }


def extract_path(record):
    """Returns the path a successful file-access syscall referred to, if any."""
    if not record:
        return None

    syscall = record["syscall"]
    if is_noise_syscall(syscall):
        return None
    # A failed call never resolved its path
    if record["result"] == -1:
        return None

    index = PATH_ARG_INDEX.get(syscall)
    if index is None or index >= len(record["args"]):
        return None
    return record["args"][index] or None


def strace_line_to_path(line):
    return extract_path(parse_strace_line(line))
