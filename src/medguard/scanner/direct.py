"""Local folder reading for the MedGuard CLI."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Iterable, List, Optional

from medguard.core.requests import FileDescriptor

logger = logging.getLogger(__name__)

BINARY_EXTS = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".ico",
    ".zip",
    ".gz",
    ".tar",
    ".tgz",
    ".7z",
    ".xz",
    ".dmg",
    ".exe",
    ".dll",
    ".so",
    ".dylib",
    ".bin",
    ".dcm",
}


def read_text_safely(path: Path, max_bytes: int = 1_000_000) -> Optional[str]:
    """
    Read small files safely as text. Returns None on obvious binary or oversized file.
    """
    try:
        if not path.is_file():
            return None
        if path.stat().st_size > max_bytes:
            return None
        if path.suffix.lower() in BINARY_EXTS:
            return None

        data = path.read_bytes()
        # Heuristic: any NUL byte means binary
        if b"\x00" in data:
            return None
        return data.decode("utf-8", errors="ignore")
    except OSError as e:
        logger.warning("Could not read %s: %s", path, e)
        return None


def iter_files(
    root: Path,
    include_globs: Optional[List[str]] = None,
    exclude_globs: Optional[List[str]] = None,
) -> Iterable[Path]:
    """Yield files under *root* honouring include/exclude globs, sorted by path."""
    include_globs = include_globs or ["**/*"]
    exclude_globs = exclude_globs or []

    if root.is_file():
        yield root
        return

    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        if any(path.match(pat) for pat in exclude_globs):
            continue
        if include_globs and not any(path.match(pat) for pat in include_globs):
            continue
        yield path


def describe_local_files(
    root_path: str,
    include_globs: Optional[List[str]] = None,
    exclude_globs: Optional[List[str]] = None,
    max_bytes: int = 1_000_000,
) -> List[FileDescriptor]:
    """
    Turn the files under *root_path* into scan descriptors.

    Logical paths start with the root folder's name so folder rollups read
    like ``records/2024``. Files that cannot be read as text are still
    described, without content, and fall back to metadata-only scanning.

    Args:
        root_path: File or directory to describe
        include_globs: Glob patterns to include
        exclude_globs: Glob patterns to exclude
        max_bytes: Files above this size are described without content

    Returns:
        List of FileDescriptor

    Raises:
        FileNotFoundError: If root_path does not exist
    """
    root = Path(root_path).resolve()
    if not root.exists():
        raise FileNotFoundError(f"Path not found: {root}")

    base = root.parent if root.is_file() else root
    descriptors = []
    for path in iter_files(root, include_globs, exclude_globs):
        if path.name in (".medguard.yml", ".medguard.yaml"):
            continue
        logical = Path(base.name) / path.relative_to(base)
        mime_type, _ = mimetypes.guess_type(path.name)
        descriptors.append(
            FileDescriptor(
                file_name=path.name,
                logical_path=logical.as_posix(),
                size_bytes=path.stat().st_size,
                mime_type=mime_type,
                content=read_text_safely(path, max_bytes=max_bytes),
            )
        )
    return descriptors
