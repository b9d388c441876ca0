#!/usr/bin/env python3
"""
Command-line interface for pyjavap - Python Java class file reader.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from .classreader import ClassPath, read_class_file
from .errors import ClassReadError
from .printer import render_class

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    logger.debug("Logging initialized (debug=%s)", debug)


def _open_classpath(args) -> ClassPath:
    classpath = ClassPath(strict_magic=args.strict_magic)
    if args.classpath:
        for entry in args.classpath.split(os.pathsep):
            if not entry:
                continue
            try:
                classpath.add_path(entry)
            except (OSError, ValueError) as e:
                classpath.close()
                print(f"Error: bad classpath entry {entry}: {e}", file=sys.stderr)
                sys.exit(1)
    return classpath


def _load_classes(args):
    """Yield (label, ClassFile) for each input: a .class path or a class name."""
    with _open_classpath(args) as classpath:
        for target in args.classes:
            path = Path(target)
            if path.suffix == ".class" or path.is_file():
                if not path.exists():
                    print(f"Error: File not found: {target}", file=sys.stderr)
                    sys.exit(1)
                try:
                    yield target, read_class_file(path, strict_magic=args.strict_magic)
                except ClassReadError as e:
                    print(f"Error reading {target}: {e}", file=sys.stderr)
                    sys.exit(1)
                continue

            name = target.replace(".", "/")
            try:
                cls = classpath.find_class(name)
            except ClassReadError as e:
                print(f"Error reading {target}: {e}", file=sys.stderr)
                sys.exit(1)
            if cls is None:
                print(f"Error: class not found: {target}", file=sys.stderr)
                sys.exit(1)
            yield target, cls


def dump_command(args):
    """Decode class files and print them as JSON."""
    for _, cls in _load_classes(args):
        print(cls.to_json(indent=args.indent))


def javap_command(args):
    """Print a javap-style listing of class files."""
    first = True
    for label, cls in _load_classes(args):
        if not first:
            print()
        first = False
        print(f"Classfile {label}")
        try:
            sys.stdout.write(render_class(cls, show_code=args.code, show_private=args.private))
        except ClassReadError as e:
            print(f"Error listing {label}: {e}", file=sys.stderr)
            sys.exit(1)


def main(argv=None):
    """Main entry point for pyjavap CLI."""
    parser = argparse.ArgumentParser(
        prog="pyjavap",
        description="Python Java class file reader - decode and list .class files",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "classes",
        nargs="+",
        help="Paths to .class files, or class names looked up on the classpath",
    )
    common.add_argument(
        "-cp", "--classpath",
        help="Classpath entries (paths to .jar files or directories, separated by os.pathsep)",
    )
    common.add_argument(
        "--strict-magic",
        action="store_true",
        help="Reject files whose magic number is not 0xCAFEBABE",
    )
    common.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Dump command
    dump_parser = subparsers.add_parser(
        "dump",
        parents=[common],
        help="Decode class files and print the structure as JSON",
    )
    dump_parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indentation (default: 2)",
    )
    dump_parser.set_defaults(func=dump_command)

    # Javap command
    javap_parser = subparsers.add_parser(
        "javap",
        parents=[common],
        help="Print a javap-style listing",
    )
    javap_parser.add_argument(
        "-c", "--code",
        action="store_true",
        help="Disassemble method bodies",
    )
    javap_parser.add_argument(
        "-p", "--private",
        action="store_true",
        help="Show private members",
    )
    javap_parser.set_defaults(func=javap_command)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.debug)
    args.func(args)


if __name__ == "__main__":
    main()
