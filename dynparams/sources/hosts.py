"""
sources/hosts.py - Script hosts

A script host is the trusted, already-isolated execution context in which
computed data sources and row filters run. The engine never sandboxes
anything itself; callers that need isolation supply their own ScriptHost.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Callable, Dict, Mapping, Optional
import builtins
import inspect
import logging
import threading

from ..parameters.spec import normalize_name

logger = logging.getLogger(__name__)

# Name under which the cancel event is offered to scripts that want it
CANCEL_BINDING = "cancel_event"


class ScriptHost(ABC):
    """Execution context for data source scripts and row filters."""

    @abstractmethod
    def run(
        self,
        script: Any,
        bindings: Mapping[str, Any],
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """
        Run a data source script with dependency values bound as named inputs.

        The cancel event is set when the caller stops waiting. Honoring it is
        optional.
        """

    @abstractmethod
    def evaluate_filter(self, predicate: Any, row: Mapping[str, str]) -> bool:
        """Evaluate a row predicate against one table row."""


@lru_cache(maxsize=256)
def _compile(source: str):
    """Compile as an expression when possible, else as statements."""
    try:
        return compile(source, "<data-source>", "eval"), True
    except SyntaxError:
        return compile(source, "<data-source>", "exec"), False


class PythonScriptHost(ScriptHost):
    """
    Runs Python callables and Python source text in-process.

    Callables receive the bindings their signature accepts as keyword
    arguments (matched case-insensitively). Source text that is a single
    expression is evaluated; otherwise it is executed and the value bound to
    `result` is returned.
    """

    def __init__(self, globals_: Optional[Dict[str, Any]] = None):
        self._globals = dict(globals_ or {})

    def _namespace(self, bindings: Mapping[str, Any]) -> Dict[str, Any]:
        namespace: Dict[str, Any] = {"__builtins__": builtins}
        namespace.update(self._globals)
        namespace.update(bindings)
        return namespace

    def run(
        self,
        script: Any,
        bindings: Mapping[str, Any],
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        if callable(script):
            return self._call(script, bindings, cancel_event)

        code, is_expression = _compile(str(script))
        namespace = self._namespace(bindings)
        namespace[CANCEL_BINDING] = cancel_event
        if is_expression:
            return eval(code, namespace)
        exec(code, namespace)
        return namespace.get("result")

    def _call(
        self,
        func: Callable[..., Any],
        bindings: Mapping[str, Any],
        cancel_event: Optional[threading.Event],
    ) -> Any:
        try:
            signature = inspect.signature(func)
        except (TypeError, ValueError):
            return func(**bindings)

        params = signature.parameters
        accepts_kwargs = any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values())
        by_key = {
            normalize_name(name): name for name, p in params.items()
            if p.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
        }

        kwargs: Dict[str, Any] = {}
        for name, value in bindings.items():
            target = by_key.get(normalize_name(name))
            if target is not None:
                kwargs[target] = value
            elif accepts_kwargs:
                kwargs[name] = value

        if CANCEL_BINDING in params and CANCEL_BINDING not in kwargs:
            kwargs[CANCEL_BINDING] = cancel_event

        return func(**kwargs)

    def evaluate_filter(self, predicate: Any, row: Mapping[str, str]) -> bool:
        if callable(predicate):
            return bool(predicate(row))

        code, is_expression = _compile(str(predicate))
        namespace = self._namespace(row)
        namespace["row"] = row
        if is_expression:
            return bool(eval(code, namespace))
        exec(code, namespace)
        return bool(namespace.get("result"))
