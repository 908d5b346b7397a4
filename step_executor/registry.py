"""
Named orchestration definitions.

A definition is a plain function that receives an ``Executor``, issues its
steps and returns the executor::

    @definition("deploy")
    def deploy(executor):
        return executor.run_external("git pull").run_console("migrate")
"""
import importlib
import logging
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .executor import Definition, Executor

DEFINITION_TEMPLATE = '''"""{title} orchestration."""
from step_executor import Executor, definition


@definition("{name}")
def {function}(executor: Executor) -> Executor:
    return executor.run_external("echo {name}")
'''


class DefinitionRegistry:
    """Maps names to orchestration definitions."""

    def __init__(self):
        self._definitions: Dict[str, Definition] = {}

    def register(self, name: str, fn: Definition) -> Definition:
        if name in self._definitions and self._definitions[name] is not fn:
            raise ValueError(f"Definition already registered: '{name}'")
        self._definitions[name] = fn
        logging.debug(f"Registered definition: {name}")
        return fn

    def definition(self, name: Optional[str] = None) -> Callable[[Definition], Definition]:
        """Decorator registering a function under ``name`` (defaults to its own name)."""
        def decorator(fn: Definition) -> Definition:
            return self.register(name or fn.__name__, fn)
        return decorator

    def get(self, name: str) -> Definition:
        try:
            return self._definitions[name]
        except KeyError:
            known = ", ".join(self.names()) or "none"
            raise KeyError(f"Unknown definition: '{name}' (registered: {known})") from None

    def names(self) -> List[str]:
        return sorted(self._definitions)

    def __contains__(self, name: str) -> bool:
        return name in self._definitions

    def run(self, name: str, executor: Executor) -> Executor:
        """Run a definition on a fresh output buffer."""
        fn = self.get(name)
        logging.info(f"Running definition: {name}")
        return executor.reset_output().run(fn)


default_registry = DefinitionRegistry()
definition = default_registry.definition


def load_definition(target: str) -> Definition:
    """Import ``package.module:function`` and return the function."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Invalid definition target (expected module:function): {target}")

    module = importlib.import_module(module_name)
    try:
        fn = getattr(module, attr)
    except AttributeError:
        raise ValueError(f"Module '{module_name}' has no definition '{attr}'") from None
    if not callable(fn):
        raise ValueError(f"Definition '{target}' is not callable")
    return fn


def make_definition(name: str, directory: str = ".") -> Path:
    """Write a new definition module from the template and return its path."""
    if not re.fullmatch(r"[A-Za-z][\w-]*", name):
        raise ValueError(f"Invalid definition name: {name}")
    function = name.replace("-", "_").lower()

    path = Path(directory) / f"{function}.py"
    if path.exists():
        raise FileExistsError(f"Definition module already exists: {path}")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFINITION_TEMPLATE.format(
        title=name.replace("_", " ").replace("-", " ").title(),
        name=name,
        function=function,
    ))
    logging.info(f"Created definition module: {path}")
    return path
