from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import IO

log = logging.getLogger(__name__)


class OutputError(RuntimeError):
    def __init__(self, path: Path, exc: BaseException) -> None:
        self.path = path
        super().__init__(f"cannot write {path}: {exc}")


class AtomicTextArtifact:
    """A text file that only appears at `path` once it is complete.

    Content goes to a temporary file in the target directory. `prepare()`
    finishes and closes it, `publish()` renames it over `path`, and `commit()`
    does both. `abort()` discards it. Used as a context manager it commits on
    success and aborts on error, so a failed run never leaves a truncated
    artifact and never clobbers the previous one.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._fh: IO[str] | None = None
        self._tmp: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    def open(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
            self._tmp = Path(tmp)
            self._fh = os.fdopen(fd, "w", encoding="utf-8", newline="")
            os.chmod(tmp, 0o644)
        except OSError as exc:
            raise OutputError(self.path, exc) from exc
        self.on_open()

    def on_open(self) -> None:
        pass

    def before_commit(self) -> None:
        pass

    def write(self, text: str) -> None:
        if not self.is_open:
            raise RuntimeError(f"{self.path} is not open")
        try:
            self._fh.write(text)
        except OSError as exc:
            raise OutputError(self.path, exc) from exc

    def prepare(self) -> None:
        """Write the trailer and close the temporary file, leaving it unpublished."""
        if not self.is_open:
            raise RuntimeError(f"{self.path} is not open")
        try:
            self.before_commit()
            self._fh.close()
        except OSError as exc:
            self.abort()
            raise OutputError(self.path, exc) from exc
        except OutputError:
            self.abort()
            raise
        self._fh = None

    def publish(self) -> None:
        if self.is_open or self._tmp is None:
            raise RuntimeError(f"{self.path} is not prepared")
        try:
            self._tmp.replace(self.path)
        except OSError as exc:
            self.abort()
            raise OutputError(self.path, exc) from exc
        self._tmp = None
        log.debug("Wrote %s", self.path)

    def commit(self) -> None:
        self.prepare()
        self.publish()

    def abort(self) -> None:
        if self._fh is not None:
            try:
                self._fh.close()
            except OSError as exc:
                log.debug("Closing %s failed (%s)", self._tmp, exc)
            self._fh = None
        if self._tmp is not None:
            try:
                self._tmp.unlink()
            except OSError as exc:
                log.debug("Removing %s failed (%s)", self._tmp, exc)
            self._tmp = None

    def __enter__(self):
        try:
            self.open()
        except OutputError:
            self.abort()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.abort()


def _backup(path: Path) -> Path | None:
    if not path.is_file():
        return None
    backup: Path | None = None
    try:
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".bak", dir=path.parent)
        os.close(fd)
        backup = Path(tmp)
        shutil.copy2(path, backup)
    except OSError as exc:
        if backup is not None:
            backup.unlink(missing_ok=True)
        raise OutputError(path, exc) from exc
    return backup


def _restore(path: Path, backup: Path | None) -> bool:
    try:
        if backup is None:
            path.unlink(missing_ok=True)
        else:
            backup.replace(path)
    except OSError as exc:
        log.warning("Could not restore %s from %s (%s)", path, backup, exc)
        return False
    return True


class ArtifactGroup:
    """Several artifacts that are published together or not at all.

    Every artifact is prepared before any is renamed into place. If a later
    rename fails, the targets already replaced get their previous content
    back, or are removed when they did not exist before.
    """

    def __init__(self, *artifacts: AtomicTextArtifact) -> None:
        self.artifacts = artifacts

    def open(self) -> None:
        try:
            for artifact in self.artifacts:
                artifact.open()
        except BaseException:
            self.abort()
            raise

    def abort(self) -> None:
        for artifact in self.artifacts:
            artifact.abort()

    def commit(self) -> None:
        try:
            for artifact in self.artifacts:
                artifact.prepare()
        except OutputError:
            self.abort()
            raise

        backups: list[Path | None] = []
        published: list[AtomicTextArtifact] = []
        try:
            for artifact in self.artifacts:
                backups.append(_backup(artifact.path))
            for artifact in self.artifacts:
                artifact.publish()
                published.append(artifact)
        except OutputError:
            for artifact, backup in zip(reversed(published), reversed(backups[: len(published)])):
                if not _restore(artifact.path, backup):
                    # left on disk so the previous content is not lost
                    backups.remove(backup)
            self.abort()
            raise
        finally:
            for backup in backups:
                if backup is not None:
                    backup.unlink(missing_ok=True)

    def __enter__(self) -> tuple[AtomicTextArtifact, ...]:
        self.open()
        return self.artifacts

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.abort()
