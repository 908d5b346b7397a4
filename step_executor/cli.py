#!/usr/bin/env python3
"""
Command line entry point: run a named orchestration definition.

Usage:
    step-executor package.module:function [--notify] [--debug]
    step-executor NAME --module package.module [--module ...] [--notify]
    step-executor --list --module package.module
    step-executor --make NAME [--path DIR]
"""
import importlib
import logging
import sys
from typing import List, Optional

from .context import ExecutionContext
from .exceptions import CommandTimeout, ValidationError
from .executor import Executor
from .registry import default_registry, load_definition, make_definition

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%H:%M:%S'
)

_VALUE_OPTIONS = ("--module", "-m", "--make", "--path")


def _option_values(argv: List[str], *names: str) -> List[str]:
    """Return every value given for the options ``names``."""
    values = []
    for i, arg in enumerate(argv):
        if arg in names:
            if i + 1 >= len(argv):
                raise ValueError(f"Option {arg} expects a value")
            values.append(argv[i + 1])
    return values


def _positionals(argv: List[str]) -> List[str]:
    result = []
    skip = False
    for arg in argv:
        if skip:
            skip = False
        elif arg in _VALUE_OPTIONS:
            skip = True
        elif not arg.startswith("-"):
            result.append(arg)
    return result


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    argv = sys.argv[1:] if argv is None else argv

    debug = '--debug' in argv or '-d' in argv
    notify = '--notify' in argv
    list_only = '--list' in argv

    if debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        make_names = _option_values(argv, "--make")
        if make_names:
            directory = (_option_values(argv, "--path") or ["."])[-1]
            for name in make_names:
                print(make_definition(name, directory))
            return

        for module_name in _option_values(argv, "--module", "-m"):
            importlib.import_module(module_name)

        if list_only:
            for name in default_registry.names():
                print(name)
            return

        targets = _positionals(argv)
        if len(targets) != 1:
            print(__doc__.strip())
            sys.exit(2)
        target = targets[0]

        if ":" in target:
            fn = load_definition(target)
        elif target in default_registry:
            fn = default_registry.get(target)
        else:
            logging.error(f"Unknown definition: '{target}'")
            print("No definition available")
            sys.exit(100)

    except (ValueError, FileExistsError, ImportError) as e:
        logging.error(f"Configuration error: {e}")
        sys.exit(2)
    except Exception as e:
        logging.error(f"Unexpected error: {e}", exc_info=debug)
        sys.exit(1)

    try:
        executor = Executor(context=ExecutionContext.from_env(running_in_console=True))
        executor.run(fn)

        if notify:
            executor.complete_notification(target)
        logging.info(f"Execution complete: {target}")

    except ValidationError as e:
        logging.error(f"Validation error: {e}")
        sys.exit(2)
    except CommandTimeout as e:
        logging.error(f"{e}")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Unexpected error: {e}", exc_info=debug)
        sys.exit(1)


if __name__ == "__main__":
    main()
