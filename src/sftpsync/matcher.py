"""Glob-style exclusion matching against paths relative to the sync root."""
import fnmatch
from typing import Iterable, List


def normalize_relative_path(relative_path: str) -> str:
    """Converts a relative path to posix separators without a leading './' or '/'."""
    normalized = relative_path.replace('\\', '/')
    while normalized.startswith('./'):
        normalized = normalized[2:]
    return normalized.lstrip('/')


def _match_segments(path_parts: List[str], pattern_parts: List[str]) -> bool:
    """Matches path segments against pattern segments, '**' spanning any number of segments."""
    if not pattern_parts:
        # A directory's trailing '/' leaves one empty segment, which a pattern may leave unmatched
        return not path_parts or path_parts == ['']

    head = pattern_parts[0]
    if head == '**':
        # Collapse runs of '**' before trying every split point
        rest = pattern_parts[1:]
        while rest and rest[0] == '**':
            rest = rest[1:]
        if not rest:
            return True
        for start in range(len(path_parts) + 1):
            if _match_segments(path_parts[start:], rest):
                return True
        return False

    if not path_parts:
        return False
    if not fnmatch.fnmatchcase(path_parts[0], head):
        return False
    return _match_segments(path_parts[1:], pattern_parts[1:])


def matches_pattern(path_for_match: str, pattern: str) -> bool:
    """Tests one already-suffixed path against one glob pattern."""
    pattern = normalize_relative_path(pattern)
    if not pattern:
        return False
    return _match_segments(path_for_match.split('/'), pattern.split('/'))


def is_excluded(relative_path: str, is_directory: bool, patterns: Iterable[str]) -> bool:
    """Checks whether a path matches any of the exclusion patterns.

    Directories get a trailing '/' before matching, so a pattern such as
    'tmp/' only ever matches directories. '*', '?' and bracket classes never
    cross a '/'; a '**' segment matches zero or more whole segments.

    Args:
        relative_path: Path relative to the sync root.
        is_directory: Whether the path names a directory.
        patterns: Glob patterns to test.

    Returns:
        bool: True if any pattern matches.
    """
    path_for_match = normalize_relative_path(relative_path)
    if is_directory:
        path_for_match += '/'
    return any(matches_pattern(path_for_match, pattern) for pattern in patterns)
