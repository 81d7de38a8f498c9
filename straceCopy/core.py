import contextlib
import logging
import os
import shutil
import subprocess

from .parser import strace_line_to_path
from .paths import is_regular_file, relative_path, strip_prefix, usrmerge

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

DEFAULT_PREFIX = "/usr/"

# Default timeout for recording a trace (in seconds)
DEFAULT_TIMEOUT = 300  # 5 minutes

STRACE_FILTER = "trace=file,process"

LOG_ENV_VAR = "STRACE_COPY_LOG"
LOG_FORMAT = "[strace-copy] %(levelname)s: %(message)s"


class StraceCopyError(Exception):
    """Base class for errors that abort a whole run."""
    pass


class TraceLogError(StraceCopyError):
    """Raised when an input strace log cannot be opened."""
    pass


class SymlinkError(StraceCopyError):
    """Raised when a link cannot be created after its old entry was removed."""
    pass


class StraceNotFoundError(StraceCopyError):
    """Raised when strace is not found on the system."""
    pass


class TraceTimeoutError(StraceCopyError):
    """Raised when a traced command runs past its timeout."""
    pass


class ManifestError(StraceCopyError):
    """Raised when there's an issue with a replication manifest."""
    pass


def resolve_log_level(verbose, environ=None):
    """Returns the minimum log level: INFO when verbose, WARNING otherwise.

    A level name in the STRACE_COPY_LOG environment variable wins over both.
    """
    if environ is None:
        environ = os.environ
    level = logging.INFO if verbose else logging.WARNING

    override = environ.get(LOG_ENV_VAR)
    if override:
        override_level = getattr(logging, override.strip().upper(), None)
        if isinstance(override_level, int):
            level = override_level
    return level


def setup_logging(verbose):
    logging.basicConfig(level=resolve_log_level(verbose), format=LOG_FORMAT)


def _ensure_strace_available():
    """Check if strace is available on the system."""
    if shutil.which("strace") is None:
        raise StraceNotFoundError(
            "strace not found. Please install it:\n"
            "  Ubuntu/Debian: sudo apt install strace\n"
            "  Fedora/RHEL:   sudo dnf install strace\n"
            "  Arch:          sudo pacman -S strace"
        )


def record_trace(command, log_file, timeout=None):
    """Runs a command under strace, writing the trace to `log_file`.

    Args:
        command: The shell command to trace
        log_file: Where strace writes its log
        timeout: Maximum seconds to run (default: DEFAULT_TIMEOUT)

    Returns:
        The exit status of strace (which is the traced command's status)

    Raises:
        StraceNotFoundError: If strace is not installed
        TraceTimeoutError: If the command runs past the timeout
    """
    _ensure_strace_available()

    if timeout is None:
        timeout = DEFAULT_TIMEOUT

    # Use ["sh", "-c", command] to correctly trace compound commands.
    # -f follows forks, so every line in the log starts with a PID.
    strace_command = ["strace", "-f", "-o", os.fspath(log_file), "-e", STRACE_FILTER,
                      "sh", "-c", command]
    logger.info("Recording trace of \"%s\" to %s", command, log_file)

    try:
        result = subprocess.run(
            strace_command,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout
        )
    except subprocess.TimeoutExpired as e:
        raise TraceTimeoutError(f"Command timed out after {timeout} seconds.") from e

    if result.returncode != 0:
        logger.warning("Traced command exited with status %d", result.returncode)
        if result.stderr:
            logger.debug("Stderr:\n%s", result.stderr)
    return result.returncode


def _create_parent_dirs(path):
    parent = os.path.dirname(path)
    if not parent:
        return
    try:
        os.makedirs(parent, exist_ok=True)
    except OSError as e:
        logger.warning("Cannot create directory %s: %s", parent, e)


def replicate_path(src, prefix, destination, dry_run=False):
    """Copies one referenced file under `destination`, recreating the symlink that led to it.

    The file is placed at its canonical location with `prefix` replaced by
    `destination`. If `src` is itself a symlink, a relative symlink is
    created at the matching place under `destination`. Symlinked parent
    directories of `src` are not reproduced.

    Args:
        src: Path of the file as the traced program referenced it
        prefix: Source prefix; files whose canonical path is outside it are skipped
        destination: Root of the replicated tree
        dry_run: If True, only log what would be done

    Returns:
        A dictionary describing what was replicated, or None if `src` was skipped

    Raises:
        SymlinkError: If a link cannot be created once its old entry is gone
    """
    try:
        canonical = os.path.realpath(src, strict=True)
    except OSError as e:
        logger.warning("Cannot canonicalize %s: %s", src, e)
        return None

    rel = strip_prefix(canonical, prefix)
    if rel is None:
        return None

    copy_path = os.path.join(destination, rel)
    replicated = {
        "source": src,
        "canonical": canonical,
        "copy": copy_path,
        "link": None,
        "link_target": None,
    }

    if dry_run:
        logger.info("Would copy %s to %s", src, copy_path)
    else:
        _create_parent_dirs(copy_path)
        try:
            shutil.copy(src, copy_path)
        except OSError as e:
            logger.warning("Cannot copy %s to %s: %s", src, copy_path, e)
        else:
            logger.info("Copied %s to %s", src, copy_path)

    # Only the last component is checked; a symlinked parent directory is not reproduced.
    if canonical == src or not os.path.islink(src):
        return replicated

    link_rel = strip_prefix(src, prefix)
    if link_rel is None:
        return replicated

    link = os.path.join(destination, link_rel)
    target = relative_path(os.path.dirname(link), copy_path)
    replicated["link"] = link
    replicated["link_target"] = target

    if dry_run:
        logger.info("Would link %s to %s (aka %s)", link, target, copy_path)
        return replicated

    # Nothing is there on a first run.
    with contextlib.suppress(OSError):
        os.remove(link)
    _create_parent_dirs(link)
    try:
        os.symlink(target, link)
    except OSError as e:
        raise SymlinkError(f"Cannot create symlink from {link} to {copy_path}: {e}") from e
    logger.info("Created link %s to %s (aka %s)", link, target, copy_path)

    return replicated


def replicate_log(log_file, prefix, destination, dry_run=False):
    """Replicates every file referenced by one strace log, yielding what was replicated.

    Raises:
        TraceLogError: If the log cannot be opened
    """
    try:
        # surrogateescape keeps undecodable path bytes intact for os calls
        f = open(log_file, 'r', encoding='utf-8', errors='surrogateescape')
    except OSError as e:
        raise TraceLogError(f"Cannot open strace log {log_file}: {e}") from e

    with f:
        for line in f:
            src = strace_line_to_path(line)
            if src is None:
                continue
            src = usrmerge(src)
            if not is_regular_file(src):
                continue
            replicated = replicate_path(src, prefix, destination, dry_run=dry_run)
            if replicated is not None:
                yield replicated


def replicate_logs(log_files, prefix=DEFAULT_PREFIX, destination=".", dry_run=False):
    """Processes strace logs in order and returns everything that was replicated.

    Args:
        log_files: Paths of strace logs
        prefix: Source prefix (default: /usr/)
        destination: Root of the replicated tree
        dry_run: If True, report without touching the destination

    Raises:
        TraceLogError: If a log cannot be opened
        SymlinkError: If a link cannot be created
    """
    results = []
    for log_file in log_files:
        logger.debug("Reading strace log %s", log_file)
        results.extend(replicate_log(log_file, prefix, destination, dry_run=dry_run))
    return results
