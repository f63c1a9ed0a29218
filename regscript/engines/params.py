"""
Step param interpolation with Jinja2 (native types, sandboxed).

``{{ var }}`` inside a param string is rendered against the run's variables
just before the step runs. A string that is exactly one ``{{ }}`` expression
keeps the native type of its value (a number stays a number). Strings without
template markers are passed through untouched.

Rendering goes through an immutable sandboxed environment: dunder attributes,
internal globals and mutating calls on the run's registries are rejected.

ASSERT conditions are bare Jinja2 expressions (``balance > 1``) compiled with
``compile_expression``.
"""

from typing import Any

from jinja2 import StrictUndefined, TemplateError, TemplateSyntaxError, Undefined, UndefinedError, meta
from jinja2.nativetypes import NativeCodeGenerator, NativeTemplate, native_concat
from jinja2.sandbox import ImmutableSandboxedEnvironment, SecurityError

# Names every declarative run provides besides its variables
BUILTIN_NAMES = frozenset({"wallets", "transactions", "blocks", "dry_run"})


class SandboxedNativeEnvironment(ImmutableSandboxedEnvironment):
    """ImmutableSandboxedEnvironment that renders to native Python types."""

    code_generator_class = NativeCodeGenerator
    concat = staticmethod(native_concat)
    template_class = NativeTemplate


_PARAM_ENV: SandboxedNativeEnvironment | None = None


def _get_param_env() -> SandboxedNativeEnvironment:
    """Shared environment; undefined names raise instead of rendering empty."""
    global _PARAM_ENV
    if _PARAM_ENV is None:
        _PARAM_ENV = SandboxedNativeEnvironment(undefined=StrictUndefined, autoescape=False)
    return _PARAM_ENV


def _defined(value: Any) -> Any:
    # A lone {{ expr }} hands back the Undefined object itself; str() raises its error
    if isinstance(value, Undefined):
        str(value)
    return value


def is_template(value: Any) -> bool:
    return isinstance(value, str) and ("{{" in value or "{%" in value)


def render_value(value: Any, variables: dict[str, Any]) -> Any:
    """Render ``value`` recursively (dict keys included). Raises ValueError on undefined names."""
    if isinstance(value, dict):
        return {render_value(k, variables): render_value(v, variables) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [render_value(v, variables) for v in value]
    if not is_template(value):
        return value
    env = _get_param_env()
    try:
        return _defined(env.from_string(value).render(**variables))
    except SecurityError as e:
        raise ValueError(f"Unsafe expression in {value!r}: {e}") from e
    except UndefinedError as e:
        raise ValueError(f"Variable not found in {value!r}: {e}. Available: {sorted(variables)}") from e
    except TemplateError as e:
        raise ValueError(f"Cannot render {value!r}: {e}") from e


def render_params(params: dict[str, Any], variables: dict[str, Any]) -> dict[str, Any]:
    """Interpolate every param of a step."""
    return {key: render_value(value, variables) for key, value in params.items()}


def _undeclared(source: str) -> set[str]:
    env = _get_param_env()
    names = meta.find_undeclared_variables(env.parse(source))
    return {n for n in names if n not in env.globals}


def find_references(value: Any) -> set[str]:
    """
    Names referenced by ``{{ }}`` / ``{% %}`` anywhere inside ``value``.
    Raises TemplateSyntaxError for malformed templates.
    """
    if isinstance(value, dict):
        found: set[str] = set()
        for k, v in value.items():
            found |= find_references(k)
            found |= find_references(v)
        return found
    if isinstance(value, (list, tuple)):
        found = set()
        for v in value:
            found |= find_references(v)
        return found
    if not is_template(value):
        return set()
    return _undeclared(value)


def expression_references(expression: str) -> set[str]:
    """Names referenced by a bare expression such as an ASSERT condition."""
    if is_template(expression):
        return _undeclared(expression)
    return _undeclared("{{ " + expression + " }}")


def evaluate_condition(expression: Any, variables: dict[str, Any]) -> bool:
    """
    Truth value of an ASSERT condition. Booleans are taken as-is; strings
    are Jinja2 expressions evaluated against ``variables``.
    """
    if isinstance(expression, bool):
        return expression
    if not isinstance(expression, str):
        raise ValueError(f"Condition must be a string or boolean, got {type(expression).__name__}")
    env = _get_param_env()
    try:
        if is_template(expression):
            value = env.from_string(expression).render(**variables)
        else:
            value = env.compile_expression(expression, undefined_to_none=False)(**variables)
        return bool(_defined(value))
    except TemplateSyntaxError as e:
        raise ValueError(f"Invalid condition {expression!r}: {e}") from e
    except SecurityError as e:
        raise ValueError(f"Unsafe expression in condition {expression!r}: {e}") from e
    except UndefinedError as e:
        raise ValueError(f"Variable not found in condition {expression!r}: {e}") from e
