"""
Script binding modules: config, log.
"""

from regscript.engines.script.modules.config import ScriptConfig, make_config_module
from regscript.engines.script.modules.log import make_log_module

__all__ = [
    "ScriptConfig",
    "make_config_module",
    "make_log_module",
]
