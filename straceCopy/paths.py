"""Path helpers for laying out the replicated tree."""

import os


class RelativePathError(ValueError):
    """Raised when a relative path is requested between identical paths."""
    pass


def _components(path):
    """Splits a path into components, keeping "/" as the root of an absolute path."""
    path = os.fspath(path)
    parts = [part for part in path.split("/") if part and part != "."]
    if path.startswith("/"):
        return ["/"] + parts
    return parts


def usrmerge(path):
    """Rewrites /lib/... to /usr/lib/..., for systems where the two are merged.

    Only a whole leading "/lib" component matches, so /lib64 and /library
    are returned unchanged.
    """
    parts = _components(path)
    if parts[:2] == ["/", "lib"]:
        return os.path.join("/usr/lib", *parts[2:])
    return os.fspath(path)


def strip_prefix(path, prefix):
    """Returns `path` relative to `prefix`, or None if `prefix` is not a leading part of it.

    The comparison is done component by component: "/usr/" is a prefix of
    "/usr/lib/libc.so.6" but not of "/usrlocal/lib".
    """
    parts = _components(path)
    prefix_parts = _components(prefix)
    if len(parts) <= len(prefix_parts) or parts[:len(prefix_parts)] != prefix_parts:
        return None
    return "/".join(parts[len(prefix_parts):])


def relative_path(from_dir, to):
    """Computes the relative path leading from directory `from_dir` to `to`.

    This is the body of a symlink living in `from_dir` that must resolve to
    `to`. Each component of `from_dir` past the common ancestor adds one
    "..", then the rest of `to` follows:

        relative_path("/a/b/c", "/a/b/d/e") == "../d/e"
        relative_path("/a/b/c", "/a/x") == "../../x"

    Args:
        from_dir: Directory the relative path is interpreted from
        to: Path the result must point at

    Raises:
        RelativePathError: If both paths are identical
    """
    from_parts = _components(from_dir)
    to_parts = _components(to)
    if from_parts == to_parts:
        raise RelativePathError(
            f"Cannot compute relative path of identical paths: {from_dir!r} {to!r}"
        )

    common = 0
    while (common < len(from_parts) and common < len(to_parts)
           and from_parts[common] == to_parts[common]):
        common += 1

    parts = [".."] * (len(from_parts) - common) + to_parts[common:]
    return "/".join(parts)


def is_regular_file(path):
    """True if `path` exists and is a regular file, following symlinks."""
    return os.path.isfile(path)
