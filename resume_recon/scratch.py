"""
Scratch storage for transient page images.

The storage root is shared by every run in the process, so each run works
inside its own uniquely named subdirectory and removes it when done.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)


def make_run_id() -> str:
    return f"{datetime.now().strftime('%Y%m%dT%H%M%S%f')}_{uuid.uuid4().hex[:12]}"


class RunArea:
    """Per-run directory handing out unique page image paths."""

    def __init__(self, path: Path, run_id: str):
        self.path = path
        self.run_id = run_id

    def page_path(self, page_num: int, suffix: str = ".png") -> Path:
        return self.path / f"page_{page_num:03d}{suffix}"

    def files(self) -> List[Path]:
        if not self.path.exists():
            return []
        return sorted(p for p in self.path.iterdir() if p.is_file())

    def delete(self, path: Path) -> None:
        logger.debug(f"Deleting {path}")
        path.unlink(missing_ok=True)

    def clear(self) -> None:
        for path in self.files():
            try:
                self.delete(path)
            except OSError as e:
                logger.error(f"Error deleting {path}: {e}")
        try:
            self.path.rmdir()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Error removing scratch directory {self.path}: {e}")


class ScratchStorage:
    def __init__(self, root: Path):
        self.root = Path(root)

    def ensure(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    @contextmanager
    def run_area(self, run_id: Optional[str] = None) -> Iterator[RunArea]:
        """
        Yield a fresh per-run area; everything in it is deleted on exit,
        whether the block succeeds, raises, or is interrupted.
        """
        run_id = run_id or make_run_id()
        path = self.ensure() / run_id
        path.mkdir(parents=False, exist_ok=False)
        area = RunArea(path, run_id)
        logger.debug(f"Opened scratch area {path}")
        try:
            yield area
        finally:
            area.clear()
            logger.debug(f"Released scratch area {path}")
