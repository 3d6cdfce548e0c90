# Copyright Dario Mylonopoulos
# SPDX-License-Identifier: MIT

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from . import __version__
from .bridge import PendingSlot
from .config import Config, load_config
from .errors import CompileError, EaslError, ValidationError
from .operations import (
    CheckOperation,
    CompileOperation,
    FormatOperation,
    Operation,
    failure_summary,
    process_input,
    read_source,
)
from .run_config import RunConfig, build_run_config
from .sources import find_source_files
from .toolchain import Toolchain, load_toolchain
from .watch import (
    ANY_CONTENT_CHANGE,
    MODIFY_ONLY,
    MODIFY_OR_CREATE,
    ChangeBatch,
    WatchLoop,
    extension_filter,
    file_filter,
)


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid positive integer: '{value}'")
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: '{value}'")
    return n


def _run_batch(operation: Operation, input: Path, output: Optional[Path]) -> int:
    report = process_input(operation, input, output)
    if report.success:
        return 0
    if input.is_dir():
        print(f"\n{failure_summary(operation, report)}", file=sys.stderr)
    return 1


def compile_watch_loop(
    operation: Operation,
    input: Path,
    output: Optional[Path],
    config: Config,
    events: Optional[Iterable[ChangeBatch]] = None,
) -> WatchLoop:
    """Watch loop re-applying operation to each changed file of input.

    The cache is seeded with the current content of the whole source set, so
    only real edits after the initial batch trigger a rebuild.
    """
    root = input.resolve()
    if input.is_dir():
        files = find_source_files(input, config.source_extension)
        loop = WatchLoop(
            root,
            lambda path, _: operation.apply(path, operation.output_path(path, root, output)),
            extension_filter(config.source_extension),
            kinds=MODIFY_ONLY,
            recursive=True,
            config=config.watch,
            events=events,
        )
    else:
        files = [input]
        loop = WatchLoop(
            root.parent,
            lambda path, _: operation.apply(path, operation.output_path(path, input, output)),
            file_filter(input),
            kinds=MODIFY_OR_CREATE,
            recursive=False,
            config=config.watch,
            events=events,
        )
    loop.seed(files)
    return loop


def _watch_compile(operation: Operation, input: Path, output: Optional[Path], config: Config) -> int:
    loop = compile_watch_loop(operation, input, output, config)

    print("\nWatching for changes... (Press Ctrl+C to stop)")
    try:
        loop.run()
    except KeyboardInterrupt:
        pass
    return 0


def _cmd_compile(args: argparse.Namespace, config: Config, toolchain: Toolchain) -> int:
    operation = CompileOperation(toolchain, config)
    status = _run_batch(operation, args.input, args.output)
    if status != 0 or not args.watch:
        return status
    return _watch_compile(operation, args.input, args.output, config)


def _cmd_check(args: argparse.Namespace, config: Config, toolchain: Toolchain) -> int:
    return _run_batch(CheckOperation(toolchain, config), args.input, None)


def _cmd_format(args: argparse.Namespace, config: Config, toolchain: Toolchain) -> int:
    return _run_batch(FormatOperation(toolchain, config), args.input, args.output)


def _cmd_run(args: argparse.Namespace, config: Config, toolchain: Toolchain) -> int:
    input: Path = args.input

    def build(path: Path, source: str) -> RunConfig:
        try:
            return build_run_config(toolchain, source, args.fragment, args.vertex, args.triangles)
        except CompileError as e:
            raise e.with_path(path) from None

    source = read_source(input)
    print(f"Running {input}...")
    try:
        run_config = build(input, source)
    except ValidationError as e:
        print(f"Error: Invalid run configuration for {input}\n{e}", file=sys.stderr)
        return 1

    slot: PendingSlot[RunConfig] = PendingSlot(run_config)

    loop: Optional[WatchLoop] = None
    if args.watch:

        def reload(path: Path, source: str) -> None:
            slot.publish(build(path, source))
            print("Shader reloaded successfully!")

        loop = WatchLoop(
            input.resolve().parent,
            reload,
            file_filter(input),
            kinds=ANY_CONTENT_CHANGE,
            recursive=False,
            config=config.watch,
        )
        loop.seed([input])
        loop.start()
        print(f"Watching {input} for changes...")

    # wgpu and the window backend are only needed here.
    from .sketch import UserSketch, run_sketch

    try:
        run_sketch(UserSketch(slot, config.render))
    except KeyboardInterrupt:
        pass
    finally:
        if loop is not None:
            loop.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="easl", description="Easl compiler")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", type=Path, help="Config file, defaults to ./easl.toml or the user config")
    p.add_argument("--toolchain", help="Toolchain to use as 'module:attribute'")
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", action="store_true", help="Enable debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    sp = p.add_subparsers(dest="command", required=True)

    compile_p = sp.add_parser("compile", help="Compile a .easl file to .wgsl")
    compile_p.add_argument("input", type=Path, help="Path of the .easl file or directory to compile")
    compile_p.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Output file or directory, defaults to input file with .wgsl extension",
    )
    compile_p.add_argument(
        "-w", "--watch", action="store_true", help="Watch for file changes and recompile automatically"
    )
    compile_p.set_defaults(func=_cmd_compile)

    check_p = sp.add_parser("check", help="Typecheck a .easl file without compiling")
    check_p.add_argument("input", type=Path, help="Path of the .easl file or directory to check")
    check_p.set_defaults(func=_cmd_check)

    format_p = sp.add_parser("format", help="Format a .easl file")
    format_p.add_argument("input", type=Path, help="Path of the .easl file or directory to format")
    format_p.add_argument("-o", "--output", type=Path, help="Output file or directory, defaults to same as input")
    format_p.set_defaults(func=_cmd_format)

    run_p = sp.add_parser(
        "run",
        help="Run a .easl file as a standalone application",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    run_p.add_argument("input", type=Path, help="Path of the .easl file to run")
    run_p.add_argument(
        "-f",
        "--fragment",
        help="Name of the fragment entry point.\n"
        "Must be a function marked as @fragment.\n"
        "May be omitted if file has only one fragment entry.",
    )
    run_p.add_argument(
        "-v",
        "--vertex",
        help="Name of the vertex entry point.\n"
        "Must be a function marked as @vertex.\n"
        "May be omitted if file has only one vertex entry.",
    )
    run_p.add_argument(
        "-t",
        "--triangles",
        type=_positive_int,
        help="The number of triangles to render.\n"
        "Must be a positive integer.\n"
        "May be omitted if specified in the file\n"
        "e.g. `(def triangles: u32 100)`",
    )
    run_p.add_argument("-w", "--watch", action="store_true", help="Watch for file changes and hot-reload the shader")
    run_p.set_defaults(func=_cmd_run)

    return p


def setup_logging(args: argparse.Namespace, config: Config) -> None:
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    elif config.log_level is not None:
        level = getattr(logging, config.log_level)
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
        setup_logging(args, config)
        if args.toolchain is not None:
            config.toolchain = args.toolchain
        toolchain = load_toolchain(config.toolchain)
        return args.func(args, config, toolchain)
    except EaslError as e:
        print(e, file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
