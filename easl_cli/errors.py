# Copyright Dario Mylonopoulos
# SPDX-License-Identifier: MIT

from pathlib import Path
from typing import List, Optional, Union


class EaslError(Exception):
    pass


class ConfigError(EaslError):
    pass


class ToolchainError(EaslError):
    pass


class IoError(EaslError):
    action = "access"

    def __init__(self, path: Union[Path, str], cause: Optional[BaseException] = None):
        self.path = Path(path)
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        msg = f"Error: Failed to {self.action} {self.path}"
        if self.cause is not None:
            msg += f"\n{self.cause}"
        return msg


class FileReadError(IoError):
    action = "read input file"


class FileWriteError(IoError):
    action = "write output file"


class DirectoryReadError(IoError):
    action = "read directory"


class DirectoryCreateError(IoError):
    action = "create directory"


class PathRelativizeError(IoError):
    action = "calculate relative path for"


class NoSourceFilesError(EaslError):
    def __init__(self, directory: Path, extension: str):
        self.directory = directory
        self.extension = extension
        super().__init__(f"No .{extension} files found in directory {directory}")


class CompileError(EaslError):
    PARSE = "parse"
    SEMANTIC = "semantic"

    def __init__(self, diagnostics: List[str], stage: str = SEMANTIC, path: Optional[Path] = None):
        self.diagnostics = list(diagnostics)
        self.stage = stage
        self.path = path
        super().__init__(str(self))

    def __str__(self) -> str:
        where = f" for {self.path}" if self.path is not None else ""
        if self.stage == CompileError.PARSE:
            header = f"Compilation{where} failed due to parsing error:"
        else:
            header = f"Compilation{where} failed due to errors:"
        return header + "\n\n" + "\n\n".join(self.diagnostics)

    def with_path(self, path: Path) -> "CompileError":
        self.path = path
        return self


class ValidationError(EaslError):
    pass


class UnknownEntryPoint(ValidationError):
    def __init__(self, stage: str, name: str):
        self.stage = stage
        self.name = name
        super().__init__(f"No {stage} entry point named '{name}'")


class NoEntryPointFound(ValidationError):
    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"No {stage} entry point found")


class AmbiguousEntryPoint(ValidationError):
    def __init__(self, stage: str, candidates: List[str]):
        self.stage = stage
        self.candidates = list(candidates)
        super().__init__(
            f"Multiple {stage} entry points found ({', '.join(self.candidates)}). "
            f"Use '--{stage}' to specify one."
        )


class MissingTriangleCount(ValidationError):
    def __init__(self) -> None:
        super().__init__(
            "No triangle count specified. Specify it with the `--triangles` flag "
            "or by defining it in your source file, e.g. '(def triangles: u32 5)'"
        )


class WatchInitError(EaslError):
    def __init__(self, path: Path, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"Error: Failed to watch path {path}\n{cause}")


class WatchChannelError(EaslError):
    def __init__(self, path: Path, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"Error: Watch on {path} stopped receiving events\n{cause}")


class RenderError(EaslError):
    pass
