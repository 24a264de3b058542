"""File naming and renaming utilities."""

import re
from pathlib import Path
from typing import Iterable, List, Optional, Set, Union

# Supported image extensions
SUPPORTED_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.webp', '.bmp', '.tiff'}

MAX_NAME_LENGTH = 100
EMPTY_NAME_MESSAGE = "Empty name returned"

_DISALLOWED = re.compile(r'[^A-Za-z0-9 _-]')
_WHITESPACE = re.compile(r'\s+')


class FileRenamer:
    """Handles file naming and renaming operations with safety checks."""

    @staticmethod
    def sanitize_filename(raw: str) -> str:
        """
        Turn a free-text suggestion into a filesystem-safe base name.

        Characters outside ``[A-Za-z0-9 _-]`` are dropped, whitespace runs become a
        single space, and the result is trimmed and cut to 100 characters. The
        result may be empty.
        """
        cleaned = _DISALLOWED.sub('', raw)
        cleaned = _WHITESPACE.sub(' ', cleaned)
        # The cut can land right after a space
        return cleaned.strip()[:MAX_NAME_LENGTH].rstrip()

    @staticmethod
    def unique_path(
        directory: Union[str, Path],
        base_name: str,
        ext: str,
        current: Optional[Path] = None,
    ) -> Path:
        """
        Find a path in ``directory`` that doesn't exist yet.

        Tries ``base_name.ext`` first, then ``base_name_1.ext``, ``base_name_2.ext``
        and so on. The filesystem is checked on every call, so names taken by
        earlier renames in the same run are never reused.

        Args:
            directory: Directory the file will live in
            base_name: Desired name without extension
            ext: Extension, with or without the leading dot
            current: Path of the file being renamed; it counts as free, so a
                file already holding one of the candidate names keeps it
        """
        directory = Path(directory)
        if ext and not ext.startswith('.'):
            ext = f".{ext}"

        candidate = directory / f"{base_name}{ext}"
        counter = 1
        while candidate != current and candidate.exists():
            candidate = directory / f"{base_name}_{counter}{ext}"
            counter += 1
        return candidate

    @staticmethod
    def rename_file(old_path: Path, new_path: Path) -> None:
        """
        Move a file to its new name.

        Raises:
            FilesystemError: If the rename fails
        """
        try:
            old_path.rename(new_path)
        except OSError as e:
            raise FilesystemError(f"Failed to rename {old_path.name} to {new_path.name}: {e.strerror or e}") from e

    @staticmethod
    def is_image_file(path: Union[str, Path], supported_extensions: Set[str] = SUPPORTED_EXTENSIONS) -> bool:
        return Path(path).suffix.lower() in supported_extensions

    @staticmethod
    def filter_images(paths: Iterable[Union[str, Path]]) -> List[Path]:
        """Keep only supported image files, preserving order."""
        return [Path(p) for p in paths if FileRenamer.is_image_file(p)]

    @staticmethod
    def find_images(directory: Path, supported_extensions: Set[str] = SUPPORTED_EXTENSIONS) -> List[Path]:
        """
        Find image files directly inside a directory, sorted by name.

        Raises:
            DirectoryNotFoundError: If ``directory`` is not a directory
        """
        if not directory.exists() or not directory.is_dir():
            raise DirectoryNotFoundError(f"{directory} is not a valid directory")

        return sorted(
            (f for f in directory.iterdir() if f.is_file() and f.suffix.lower() in supported_extensions),
            key=lambda f: f.name,
        )


class FileRenamerError(Exception):
    """Base exception for naming and renaming errors."""
    pass


class SanitizationEmptyError(FileRenamerError):
    """Raised when a suggestion sanitizes to an empty name."""

    def __init__(self, message: str = EMPTY_NAME_MESSAGE):
        super().__init__(message)


class FilesystemError(FileRenamerError):
    """Raised when file renaming fails."""
    pass


class DirectoryNotFoundError(FileRenamerError):
    """Raised when directory doesn't exist."""
    pass
