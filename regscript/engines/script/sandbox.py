"""
RestrictedPython sandbox for imperative scripts and CUSTOM steps.

Allowed: safe builtins (dict, list, str, int, float, bool, range, enumerate,
zip, sorted, len, round, min, max, sum, abs, ...), json, Decimal,
datetime/timedelta, and the bindings handed in by the execution context.

Blocked: open, exec, eval, __import__, compile, attribute names starting
with an underscore, os, subprocess, etc.

``print`` is redirected to the run's log sink.
"""

import json
import operator
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from RestrictedPython import compile_restricted
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safe_builtins,
    safer_getattr,
)
from RestrictedPython.PrintCollector import PrintCollector

_INPLACE_OPS = {
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "|=": operator.ior,
    "&=": operator.iand,
}


def _inplacevar(op: str, x: Any, y: Any) -> Any:
    fn = _INPLACE_OPS.get(op)
    if fn is None:
        raise SyntaxError(f"Augmented assignment {op} is not allowed in scripts")
    return fn(x, y)


def make_print_factory(sink: Any) -> type:
    """
    PrintCollector subclass that forwards each printed line to ``sink.info``.

    RestrictedPython rewrites ``print(...)`` into calls on an instance created
    per function scope, so the sink is bound into the class.
    """

    class _SinkPrintCollector(PrintCollector):
        def __init__(self, _getattr_: Any = None) -> None:
            super().__init__(_getattr_)
            self._buffer = ""

        def write(self, text: str) -> None:
            super().write(text)
            self._buffer += text
            while "\n" in self._buffer:
                line, self._buffer = self._buffer.split("\n", 1)
                sink.info(line)

    return _SinkPrintCollector


def _make_safe_builtins() -> dict[str, Any]:
    """safe_builtins plus the container types scripts commonly need."""
    import builtins  # local import to avoid polluting globals

    safe = dict(safe_builtins)
    for name in ("dict", "list", "set", "enumerate", "sum", "min", "max", "any", "all", "map", "filter"):
        safe.setdefault(name, getattr(builtins, name))
    return safe


def _make_guard_globals() -> dict[str, Any]:
    """Guards required by RestrictedPython's rewritten bytecode."""
    return {
        "_getattr_": safer_getattr,
        "_getiter_": default_guarded_getiter,
        "_getitem_": default_guarded_getitem,
        "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
        "_unpack_sequence_": guarded_unpack_sequence,
        "_write_": full_write_guard,
        "_inplacevar_": _inplacevar,
    }


def _make_extra_globals() -> dict[str, Any]:
    """Extra safe symbols: json, Decimal, datetime, date, timedelta."""
    return {
        "json": json,
        "Decimal": Decimal,
        "datetime": datetime,
        "date": date,
        "timedelta": timedelta,
    }


def compile_script(script: str, filename: str = "<script>") -> Any:
    """
    Compile script with RestrictedPython. Raises SyntaxError on failure.

    Returns a code object suitable for exec(code, globals).
    """
    code = compile_restricted(script, filename, "exec")
    if code is None:
        raise SyntaxError("RestrictedPython: compile failed")
    return code


def build_restricted_globals(bindings: dict[str, Any], *, print_sink: Any = None) -> dict[str, Any]:
    """
    Build the globals dict for exec(compiled, globals): safe builtins, guards,
    extras, then the execution bindings. Nothing else is visible to the script.
    """
    g: dict[str, Any] = {
        "__builtins__": _make_safe_builtins(),
        "__name__": "script",
    }
    g.update(_make_guard_globals())
    g.update(_make_extra_globals())
    g["_print_"] = make_print_factory(print_sink) if print_sink is not None else PrintCollector
    g.update(bindings)
    return g
