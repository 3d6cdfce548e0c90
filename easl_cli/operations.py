# Copyright Dario Mylonopoulos
# SPDX-License-Identifier: MIT

import abc
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .config import Config
from .errors import CompileError, EaslError, FileReadError, FileWriteError, NoSourceFilesError
from .sources import find_source_files, output_path_for_file
from .toolchain import Toolchain

logger = logging.getLogger(__name__)


def read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(path, e) from e


def write_output(path: Path, text: str) -> None:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise FileWriteError(path, e) from e


@dataclass
class BatchReport:
    attempted: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


class Operation(abc.ABC):
    # Verb used in the failure summary, e.g. "Failed to compile 2 file(s)"
    verb: str = ""

    def __init__(self, toolchain: Toolchain, config: Config):
        self.toolchain = toolchain
        self.config = config

    @property
    def output_extension(self) -> Optional[str]:
        return None

    def output_path(self, file: Path, input_root: Path, output_root: Optional[Path]) -> Optional[Path]:
        return output_path_for_file(file, input_root, output_root, self.output_extension)

    @abc.abstractmethod
    def apply(self, file: Path, output: Optional[Path]) -> None:
        pass

    def report_failure(self, file: Path, error: EaslError) -> None:
        print(error, file=sys.stderr)

    def _compile(self, file: Path, source: str) -> str:
        try:
            return self.toolchain.compile(source)
        except CompileError as e:
            raise e.with_path(file) from None


class CompileOperation(Operation):
    verb = "compile"

    @property
    def output_extension(self) -> Optional[str]:
        return self.config.target_extension

    def apply(self, file: Path, output: Optional[Path]) -> None:
        source = read_source(file)
        print(f"Compiling {file}...")
        wgsl = self._compile(file, source)
        if output is None:
            output = file.with_suffix(f".{self.config.target_extension}")
        write_output(output, wgsl)
        print(f"Finished: {output}")


class CheckOperation(Operation):
    verb = "typecheck"

    def output_path(self, file: Path, input_root: Path, output_root: Optional[Path]) -> Optional[Path]:
        return None

    def apply(self, file: Path, output: Optional[Path]) -> None:
        source = read_source(file)
        print(f"Typechecking {file}...   ", end="", flush=True)
        self._compile(file, source)
        print("✅")

    def report_failure(self, file: Path, error: EaslError) -> None:
        if isinstance(error, CompileError):
            print(f"❌\n{error}\n")
        else:
            super().report_failure(file, error)


class FormatOperation(Operation):
    verb = "format"

    def apply(self, file: Path, output: Optional[Path]) -> None:
        source = read_source(file)
        print(f"Formatting {file}...")
        formatted = self.toolchain.format(source)
        if output is None:
            output = file
        write_output(output, formatted)
        print(f"Formatted: {output}")


def run_file(operation: Operation, file: Path, input_root: Path, output_root: Optional[Path]) -> bool:
    try:
        output = operation.output_path(file, input_root, output_root)
        operation.apply(file, output)
    except EaslError as e:
        operation.report_failure(file, e)
        return False
    return True


def run_batch(
    operation: Operation,
    files: List[Path],
    input_root: Path,
    output_root: Optional[Path] = None,
) -> BatchReport:
    report = BatchReport()
    for file in files:
        report.attempted.append(file)
        if not run_file(operation, file, input_root, output_root):
            report.failed.append(file)
    logger.debug("%s: %d attempted, %d failed", operation.verb, len(report.attempted), len(report.failed))
    return report


def process_input(operation: Operation, input: Path, output: Optional[Path] = None) -> BatchReport:
    extension = operation.config.source_extension
    if input.is_dir():
        files = find_source_files(input, extension)
        if not files:
            raise NoSourceFilesError(input, extension)
        print(f"Found {len(files)} .{extension} file(s) in {input}")
    else:
        files = [input]
    return run_batch(operation, files, input, output)


def failure_summary(operation: Operation, report: BatchReport) -> str:
    return f"Failed to {operation.verb} {len(report.failed)} file(s)"
