from __future__ import annotations

import logging
import posixpath
from pathlib import PurePosixPath

from memcheck.ir.models import IRFunction

log = logging.getLogger(__name__)

PATH_MATCH_MODES = {"segment", "prefix"}


def source_path(fn: IRFunction) -> str | None:
    """Absolute source path recorded in the function's debug info, if any."""
    sub = fn.subprogram
    if sub is None or sub.file is None:
        return None
    path = sub.file.full_path
    return path or None


def path_within_root(path: str, root: str, mode: str = "segment") -> bool:
    if mode == "prefix":
        return path.startswith(root)
    root_parts = PurePosixPath(posixpath.normpath(root)).parts
    path_parts = PurePosixPath(posixpath.normpath(path)).parts
    if not root_parts:
        return False
    return path_parts[: len(root_parts)] == root_parts


class MembershipClassifier:
    """Decides whether a function was written by the user.

    A function is user code when its debug info names a source file under
    `root`. Without a root every function is rejected; the missing setting is
    reported once.
    """

    def __init__(self, root: str | None, path_match: str = "segment", root_env: str = "SCOP_ROOT") -> None:
        if path_match not in PATH_MATCH_MODES:
            raise ValueError(f"path_match must be one of: {', '.join(sorted(PATH_MATCH_MODES))}")
        self.root = root or None
        self.path_match = path_match
        self.root_env = root_env
        self._reported_missing = False

    def is_user_defined(self, fn: IRFunction) -> bool:
        if self.root is None:
            if not self._reported_missing:
                log.error("Source root is not set ($%s, `root:` or --root); no function is user code.", self.root_env)
                self._reported_missing = True
            return False
        path = source_path(fn)
        if path is None:
            return False
        return path_within_root(path, self.root, self.path_match)
