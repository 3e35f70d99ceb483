"""Job-scoped working storage.

Every job renders its intermediate rasters and its output video inside its
own uniquely named temporary directory. Nothing is written to shared fixed
paths, so concurrent jobs cannot see each other's files.
"""

import os
import shutil
import tempfile
from typing import Optional


class JobArena:
    """A temporary directory owned by exactly one job.

    Use as a context manager; the directory is removed on exit whether the
    job succeeded or failed.
    """

    def __init__(self, base_dir: Optional[str] = None, prefix: str = "trackoverlay-") -> None:
        self.base_dir = base_dir
        self.prefix = prefix
        self.root: Optional[str] = None

    def __enter__(self) -> "JobArena":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.discard()

    def open(self) -> str:
        if self.root is None:
            self.root = tempfile.mkdtemp(prefix=self.prefix, dir=self.base_dir)
        return self.root

    @property
    def is_open(self) -> bool:
        return self.root is not None and os.path.isdir(self.root)

    @property
    def assets_dir(self) -> str:
        directory = os.path.join(self.open(), "assets")
        os.makedirs(directory, exist_ok=True)
        return directory

    def path(self, *parts: str) -> str:
        """Path inside the arena; parent directories are created."""
        if self.root is None:
            raise RuntimeError("Arena is not open")
        full = os.path.join(self.root, *parts)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        return full

    def asset_path(self, asset: str) -> str:
        return self.path("assets", *asset.split("/"))

    def publish(self, arena_file: str, destination: str) -> str:
        """Move a finished file out of the arena in one step."""
        destination_dir = os.path.dirname(os.path.abspath(destination))
        os.makedirs(destination_dir, exist_ok=True)
        try:
            os.replace(arena_file, destination)
        except OSError:
            # Different filesystem: stage next to the destination, then rename
            staged = destination + ".partial"
            try:
                shutil.copyfile(arena_file, staged)
                os.replace(staged, destination)
            except OSError:
                if os.path.exists(staged):
                    os.remove(staged)
                raise
        return destination

    def discard(self) -> None:
        """Remove the arena and everything in it."""
        if self.root is not None:
            shutil.rmtree(self.root, ignore_errors=True)
            self.root = None
