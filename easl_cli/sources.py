# Copyright Dario Mylonopoulos
# SPDX-License-Identifier: MIT

import os
from pathlib import Path
from typing import List, Optional, Set

from .errors import DirectoryCreateError, DirectoryReadError, PathRelativizeError


def has_extension(path: Path, extension: str) -> bool:
    return path.suffix == f".{extension}"


def find_source_files(root: Path, extension: str) -> List[Path]:
    if not root.is_dir():
        # Explicitly chosen file, no filtering.
        return [root]

    files: List[Path] = []
    visited: Set[Path] = set()
    stack = [root]
    while stack:
        directory = stack.pop()
        try:
            # Symlinked directories can lead back into the tree.
            real = directory.resolve()
            if real in visited:
                continue
            visited.add(real)
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            raise DirectoryReadError(directory, e) from e

        for entry in entries:
            path = Path(directory, entry.name)
            try:
                is_dir = entry.is_dir()
            except OSError as e:
                raise DirectoryReadError(path, e) from e
            if is_dir:
                stack.append(path)
            elif has_extension(path, extension):
                files.append(path)
    return files


def output_path_for_file(
    file: Path,
    input_root: Path,
    output_root: Optional[Path],
    extension: Optional[str],
) -> Path:
    """Destination for a processed source file.

    extension replaces the source suffix; None keeps it. Directory inputs
    mirror their structure under output_root, creating parents as needed.
    """
    if output_root is None:
        return file.with_suffix(f".{extension}") if extension is not None else file

    if not input_root.is_dir():
        return output_root

    try:
        relative = file.relative_to(input_root)
    except ValueError as e:
        raise PathRelativizeError(file, e) from e

    out = Path(output_root, relative)
    if extension is not None:
        out = out.with_suffix(f".{extension}")

    try:
        out.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryCreateError(out.parent, e) from e
    return out
