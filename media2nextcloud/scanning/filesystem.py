import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List

from .. import config
from ..exceptions import ScanError


@dataclass
class ScanResult:
    sidecars: List[Path] = field(default_factory=list)
    media: List[Path] = field(default_factory=list)
    dropped_json: int = 0


class DirectoryScanner:
    def scan(self, root: Path) -> ScanResult:
        """
        Walks root and splits regular files into sidecar descriptors and raw media.

        A .json file is a sidecar only if its name has exactly three dots;
        other .json files are dropped. Any walk error aborts the scan.
        """
        result = ScanResult()
        for path in self._iter_files(root):
            kind = self.classify(path)
            if kind == 'sidecar':
                result.sidecars.append(path)
            elif kind == 'media':
                result.media.append(path)
            else:
                result.dropped_json += 1
                logging.debug(f"Ignoring stray JSON file: {path}")

        logging.info(
            f"Scan found {len(result.sidecars)} sidecars, {len(result.media)} media files "
            f"({result.dropped_json} other JSON files ignored)"
        )
        return result

    @staticmethod
    def classify(path: Path) -> str:
        """Returns 'sidecar', 'media' or 'dropped'."""
        if path.suffix.lower() != config.SIDECAR_EXT:
            return 'media'
        if path.name.count('.') == config.SIDECAR_DOT_COUNT:
            return 'sidecar'
        return 'dropped'

    def _iter_files(self, root: Path) -> Iterator[Path]:
        """Depth-first walker using os.scandir. Symlinks are not followed."""
        if not root.is_dir():
            raise ScanError(f"Source directory does not exist: {root}")

        stack = [root.resolve()]
        while stack:
            current = stack.pop()
            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                raise ScanError(f"Failed to read directory {current}: {e}") from e

            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    stack.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    yield Path(e.path)
