"""
Template catalog: built-in scripts shipped under ``regscript/templates`` plus
an optional user directory (REGSCRIPT_TEMPLATES_DIR).

Templates are resolved by exact name, compared case-insensitively. A user
template with the same name as a built-in one wins.
"""

import logging
from pathlib import Path

from regscript.models import Script

from .errors import ScriptValidationError, TemplateNotFoundError
from .loader import DECLARATIVE_SUFFIXES, IMPERATIVE_SUFFIXES, load_script_file

logger = logging.getLogger(__name__)

BUILTIN_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


class TemplateCatalog:
    def __init__(self, directories: list[Path] | None = None) -> None:
        self.directories = directories if directories is not None else [BUILTIN_TEMPLATES_DIR]
        self._scripts: dict[str, Script] | None = None

    @classmethod
    def from_settings(cls, settings: object) -> "TemplateCatalog":
        directories = [BUILTIN_TEMPLATES_DIR]
        user_dir = getattr(settings, "REGSCRIPT_TEMPLATES_DIR", None)
        if user_dir:
            directories.append(Path(user_dir))
        return cls(directories)

    def _scan(self) -> dict[str, Script]:
        scripts: dict[str, Script] = {}
        suffixes = DECLARATIVE_SUFFIXES + IMPERATIVE_SUFFIXES
        for directory in self.directories:
            if not directory.is_dir():
                logger.warning("template directory %s does not exist", directory)
                continue
            for path in sorted(directory.iterdir()):
                if path.suffix.lower() not in suffixes or path.name.startswith("_"):
                    continue
                try:
                    script = load_script_file(path)
                except ScriptValidationError as e:
                    logger.warning("skipping invalid template %s: %s", path, "; ".join(e.messages))
                    continue
                scripts[script.name.lower()] = script
        return scripts

    def _all(self) -> dict[str, Script]:
        if self._scripts is None:
            self._scripts = self._scan()
        return self._scripts

    def names(self) -> list[str]:
        return sorted(s.name for s in self._all().values())

    def scripts(self) -> list[Script]:
        return sorted(self._all().values(), key=lambda s: s.name.lower())

    def get(self, name: str) -> Script:
        script = self._all().get(name.strip().lower())
        if script is None:
            raise TemplateNotFoundError(name, self.names())
        return script
