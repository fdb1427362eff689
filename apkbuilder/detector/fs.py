"""Read-only filesystem helpers shared by the heuristics.

Nothing here raises for missing or unreadable paths: absence of a file is
absence of evidence.
"""

import json
import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, Optional

logger = logging.getLogger(__name__)

SKIP_DIRS = frozenset({".git", "node_modules"})


def walk_files(root: Path, skip_dirs: Iterable[str] = SKIP_DIRS) -> Iterator[Path]:
    """Yield every file under `root` in a stable order.

    Directories in `skip_dirs` are pruned. Unreadable subtrees are logged
    and skipped.
    """
    skip = frozenset(skip_dirs)

    def _on_error(exc: OSError) -> None:
        logger.debug("Skipping unreadable path %s: %s", exc.filename, exc)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(d for d in dirnames if d not in skip)
        for name in sorted(filenames):
            yield Path(dirpath) / name


def files_with_suffix(root: Path, suffixes: Iterable[str]) -> list[Path]:
    """All files under `root` whose name ends with one of `suffixes`."""
    wanted = tuple(s.lower() for s in suffixes)
    return [p for p in walk_files(root) if p.name.lower().endswith(wanted)]


def first_existing(root: Path, candidates: Iterable[str]) -> Optional[Path]:
    for candidate in candidates:
        path = root / candidate
        if path.exists():
            return path
    return None


def list_dir(path: Path) -> list[Path]:
    """Direct children of `path`, or an empty list if it cannot be read."""
    try:
        return sorted(path.iterdir())
    except OSError as exc:
        logger.debug("Cannot list %s: %s", path, exc)
        return []


def read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return None


def read_json(path: Path) -> Optional[dict]:
    """Parse a JSON object file, or return None if missing or malformed."""
    text = read_text(path)
    if text is None:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return None
    return data if isinstance(data, dict) else None


def package_dependencies(pkg: dict) -> dict[str, str]:
    """dependencies and devDependencies of a package.json, merged."""
    merged: dict[str, str] = {}
    for section in ("dependencies", "devDependencies"):
        deps = pkg.get(section)
        if isinstance(deps, dict):
            merged.update({str(k): str(v) for k, v in deps.items()})
    return merged
