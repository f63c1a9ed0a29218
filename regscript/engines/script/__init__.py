"""
Sandboxed program runner for imperative scripts and CUSTOM steps.
"""

from regscript.engines.script.runner import ProgramRunner
from regscript.engines.script.sandbox import build_restricted_globals, compile_script

__all__ = [
    "ProgramRunner",
    "build_restricted_globals",
    "compile_script",
]
