# awsx/files.py
"""
Local filesystem helpers used by the synchronizer: listing files under a
folder with glob ignore patterns and turning them into FileRecords.
"""
import hashlib
import mimetypes
import os
from concurrent.futures import ThreadPoolExecutor
from fnmatch import fnmatch
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .config import get_settings
from .errors import invalid_argument, wrap_errors
from .models import FileRecord

DEFAULT_PATTERN = '**/*.*'

# Types served as text that should advertise their charset.
_TEXT_LIKE_TYPES = {
    'application/javascript',
    'application/json',
    'application/xml',
    'image/svg+xml',
}

Patterns = Optional[Union[str, Sequence[str]]]


def _as_list(patterns: Patterns) -> List[str]:
    if not patterns:
        return []
    if isinstance(patterns, str):
        return [patterns]
    return list(patterns)


def _is_hidden(relative: Path) -> bool:
    return any(part.startswith('.') for part in relative.parts)


def _match_segments(parts: Sequence[str], pattern_parts: Sequence[str]) -> bool:
    if not pattern_parts:
        return not parts
    head, rest = pattern_parts[0], pattern_parts[1:]
    if head == '**':
        return any(_match_segments(parts[i:], rest) for i in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatch(parts[0], head) and _match_segments(parts[1:], rest)


def is_ignored(relative_path: str, patterns: Sequence[str]) -> bool:
    """
    Checks a '/' separated relative path against glob patterns.

    Patterns are matched segment by segment: '*' never crosses a '/', while
    a '**' segment matches zero or more folders (so a leading '**/' also
    matches files at the root of the folder).
    """
    parts = [p for p in relative_path.split('/') if p]
    for pattern in patterns:
        pattern = pattern.replace(os.sep, '/')
        if pattern.startswith('./'):
            pattern = pattern[2:]
        if _match_segments(parts, [p for p in pattern.split('/') if p]):
            return True
    return False


def list_files(folder_path: str, pattern: Patterns = DEFAULT_PATTERN, ignore: Patterns = None) -> List[str]:
    """
    Gets the absolute paths of the files located under `folder_path`.

    Args:
        folder_path: Absolute or relative path to the folder.
        pattern: Glob pattern(s) relative to the folder. '*.*' means the
            immediate files, '**/*.*' means all the files.
        ignore: Glob pattern(s) to skip (e.g., '**/node_modules/**').

    Returns:
        A sorted list of absolute file paths. Hidden files and folders are skipped.

    Raises:
        InvalidArgumentError: If the folder is missing or does not exist.
    """
    err_msg = f"Failed to list files in folder '{folder_path}'"
    if not folder_path:
        raise invalid_argument(err_msg, "Missing required 'folder_path' argument")

    root = Path(folder_path).resolve()
    if not root.exists():
        raise invalid_argument(err_msg, f"Folder '{folder_path}' not found.")

    ignore_patterns = _as_list(ignore)
    found = set()
    for glob_pattern in _as_list(pattern):
        for path in root.glob(glob_pattern):
            if not path.is_file():
                continue
            relative = path.relative_to(root)
            if _is_hidden(relative):
                continue
            if is_ignored(relative.as_posix(), ignore_patterns):
                continue
            found.add(str(path))

    return sorted(found)


def get_content_type(file_or_ext: str) -> str:
    """
    Gets the content type associated with a file name or extension.

    e.g., 'json' -> 'application/json; charset=utf-8', 'logo.png' -> 'image/png'.
    Returns '' when the type is unknown.
    """
    if not file_or_ext:
        return ''

    name = file_or_ext
    if '.' not in name and '/' not in name:
        name = f"file.{name}"
    elif name.startswith('.') and name.count('.') == 1:
        name = f"file{name}"

    content_type, _ = mimetypes.guess_type(name)
    if not content_type:
        return ''
    if content_type.startswith('text/') or content_type in _TEXT_LIKE_TYPES:
        return f"{content_type}; charset=utf-8"
    return content_type


def key_from_path(relative_path: str) -> str:
    """Converts a relative file path to an object key ('/' separated, no leading '/')."""
    return '/'.join(part for part in relative_path.replace(os.sep, '/').split('/') if part)


def read_file_record(file: str, root: str, include_content: bool = False) -> FileRecord:
    """Reads a single file and computes its hash, key and content type."""
    with open(file, 'rb') as f:
        content = f.read()

    path = os.path.relpath(file, root)
    return FileRecord(
        file=file,
        dir=root,
        path=path,
        key=key_from_path(path),
        hash=hashlib.md5(content).hexdigest(),
        content_type=get_content_type(os.path.basename(file)),
        content_length=len(content),
        content=content if include_content else None,
    )


def get_files(
    dir: str,
    include_content: bool = False,
    ignore: Patterns = None,
    max_concurrency: Optional[int] = None,
) -> List[FileRecord]:
    """
    Gets a flat list of FileRecords for all the files under a folder.

    Files are read on a bounded thread pool. Read errors do not stop the
    other reads; they are all reported together once the pool is drained.

    Raises:
        InvalidArgumentError: If the folder does not exist.
        AwsxError: If one or more files could not be read.
    """
    err_msg = f"Fail to get all files in folder '{dir}'"
    files = list_files(dir, pattern=DEFAULT_PATTERN, ignore=ignore)
    if not files:
        return []

    root = str(Path(dir).resolve())
    workers = max_concurrency or get_settings().max_concurrency

    def _read(file):
        try:
            return read_file_record(file, root, include_content), None
        except OSError as e:
            return None, e

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(_read, files))

    all_errors = [error for _, error in results if error]
    if all_errors:
        raise wrap_errors(err_msg, all_errors)

    return [record for record, _ in results]
