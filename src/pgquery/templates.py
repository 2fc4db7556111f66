"""SQL templates: parameterized compilation and raw fragment composition.

A template is an ordered list of literal segments interleaved with values,
``S0 V0 S1 V1 ... Vn-1 Sn``. Compiling it for execution turns every plain
value into a ``$n`` placeholder plus a positional parameter. A RawFragment
is the only kind of value spliced into the SQL text directly, and
fragments can only be built by the constructors in this module, which
escape everything they are given.
"""

from __future__ import annotations

import string
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from pgquery.errors import MalformedTemplate
from pgquery.escape import escape_identifier, escape_literal

try:
    from string.templatelib import Template as TString
except ImportError:  # Python < 3.14 has no t-strings
    TString = None

_FORMATTER = string.Formatter()


@dataclass(frozen=True, slots=True)
class RawFragment:
    """Pre-escaped SQL text that bypasses parameterization.

    ``context`` is the connection the enclosing statement will run on, or
    None when a fragment is rendered outside a query.
    """

    _resolver: Callable[[Any], str] = field(repr=False)

    def resolve(self, context: Any = None) -> str:
        """Return the raw SQL text of this fragment."""
        return self._resolver(context)


@dataclass(frozen=True, slots=True)
class Statement:
    """SQL text with ``$n`` placeholders and its positional parameters."""

    sql: str
    params: tuple[Any, ...] = ()


@dataclass(frozen=True, init=False)
class SqlTemplate:
    """Literal segments interleaved with interpolated values."""

    strings: tuple[str | RawFragment, ...]
    values: tuple[Any, ...]

    def __init__(
        self, strings: Iterable[str | RawFragment], values: Iterable[Any] = ()
    ) -> None:
        strings = tuple(strings)
        values = tuple(values)
        if len(strings) != len(values) + 1:
            raise MalformedTemplate(
                f"Template needs {len(values) + 1} segments for {len(values)} values, "
                f"got {len(strings)}"
            )
        for segment in strings:
            if not isinstance(segment, str | RawFragment):
                raise MalformedTemplate(
                    f"Template segments must be str, got {type(segment).__name__}"
                )
        object.__setattr__(self, "strings", strings)
        object.__setattr__(self, "values", values)


def sql(fmt: str, /, *args: Any, **kwargs: Any) -> SqlTemplate:
    """Build a SqlTemplate from a ``str.format`` style string.

    ``sql("SELECT * FROM t WHERE id = {} AND {col} IS NULL", 5, col=identifier("x"))``

    Casts go outside the braces (``{}::int``); conversions and format specs
    are rejected. Literal braces are written ``{{`` and ``}}``.
    """
    strings: list[str] = []
    values: list[Any] = []
    pending = ""
    auto_index = 0
    try:
        parsed = list(_FORMATTER.parse(fmt))
    except ValueError as e:
        raise MalformedTemplate(f"Invalid SQL template {fmt!r}: {e}") from e

    for literal_text, field_name, format_spec, conversion in parsed:
        pending += literal_text
        if field_name is None:
            continue
        if conversion or format_spec:
            raise MalformedTemplate(
                f"Field {{{field_name}}} in {fmt!r} has a conversion or format spec; "
                "write casts outside the braces"
            )
        if field_name == "":
            field_name = str(auto_index)
            auto_index += 1
        try:
            value, _ = _FORMATTER.get_field(field_name, args, kwargs)
        except (IndexError, KeyError, AttributeError) as e:
            raise MalformedTemplate(f"No value for field {{{field_name}}} in {fmt!r}") from e
        strings.append(pending)
        values.append(value)
        pending = ""

    strings.append(pending)
    return SqlTemplate(strings, values)


def as_template(source: Any) -> SqlTemplate:
    """Coerce a SqlTemplate or a native t-string into a SqlTemplate."""
    if isinstance(source, SqlTemplate):
        return source
    if TString is not None and isinstance(source, TString):
        for interpolation in source.interpolations:
            if interpolation.conversion or interpolation.format_spec:
                raise MalformedTemplate(
                    f"Interpolation {{{interpolation.expression}}} has a conversion or "
                    "format spec; write casts outside the braces"
                )
        return SqlTemplate(source.strings, source.values)
    raise MalformedTemplate(f"Expected a SQL template, got {type(source).__name__}")


def compile_template(tpl: SqlTemplate, context: Any = None) -> Statement:
    """Compile a template into SQL with ``$n`` placeholders.

    Placeholders are numbered in order of appearance; fragments add no
    parameters.
    """
    parts: list[str] = []
    params: list[Any] = []
    for index, segment in enumerate(tpl.strings):
        parts.append(_part_text(segment, context))
        if index < len(tpl.values):
            value = tpl.values[index]
            if isinstance(value, RawFragment):
                parts.append(value.resolve(context))
            else:
                params.append(value)
                parts.append(f"${len(params)}")
    return Statement("".join(parts), tuple(params))


def coerce_source(source: Any, params: Sequence[Any] = ()) -> str | RawFragment | SqlTemplate:
    """Validate a query source without compiling it.

    Raises for anything build_statement would reject, so callers can fail
    before acquiring a connection.
    """
    if isinstance(source, str):
        return source
    if params:
        raise TypeError("params can only be passed together with a plain SQL string")
    if isinstance(source, RawFragment):
        return source
    return as_template(source)


def build_statement(source: Any, params: Sequence[Any] = (), context: Any = None) -> Statement:
    """Turn any accepted query form into a Statement.

    Accepts a plain SQL string with positional params, a SqlTemplate or
    t-string, or a RawFragment (rendered as SQL with no params).
    """
    source = coerce_source(source, params)
    if isinstance(source, str):
        return Statement(source, tuple(params))
    if isinstance(source, RawFragment):
        return Statement(source.resolve(context))
    return compile_template(source, context)


# -- RawFragment constructors --


def identifier(value: str) -> RawFragment:
    """Fragment for a single quoted identifier."""
    return _constant(escape_identifier(value))


def identifiers(values: Iterable[str], sep: str = ", ") -> RawFragment:
    """Fragment for a separated list of quoted identifiers."""
    return _constant(sep.join(escape_identifier(v) for v in values))


def literal(value: Any) -> RawFragment:
    """Fragment for a single escaped literal."""
    return _constant(escape_literal(value))


def literals(values: Iterable[Any], sep: str = ", ") -> RawFragment:
    """Fragment for a separated list of escaped literals."""
    return _constant(sep.join(escape_literal(v) for v in values))


def items(values: Iterable[Any], sep: str = ", ") -> RawFragment:
    """Fragment joining values, keeping fragments raw and escaping the rest."""
    parts = [_escape_unless_fragment(v) for v in values]

    def resolve(context: Any) -> str:
        return sep.join(_part_text(p, context) for p in parts)

    return RawFragment(resolve)


def template(source: Any, /, *args: Any, **kwargs: Any) -> RawFragment:
    """Fragment rendering a whole template with values inlined as literals.

    ``source`` is a format string (with ``args``/``kwargs``, as for
    :func:`sql`), a SqlTemplate or a t-string. Meant for composing pieces
    of SQL into other templates, where positional parameters would lose
    their meaning once spliced.
    """
    if isinstance(source, str):
        tpl = sql(source, *args, **kwargs)
    elif args or kwargs:
        raise TypeError("format arguments can only be passed with a format string")
    else:
        tpl = as_template(source)

    segments = tpl.strings
    parts = [_escape_unless_fragment(v) for v in tpl.values]

    def resolve(context: Any) -> str:
        out: list[str] = []
        for index, segment in enumerate(segments):
            out.append(_part_text(segment, context))
            if index < len(parts):
                out.append(_part_text(parts[index], context))
        return "".join(out)

    return RawFragment(resolve)


def _constant(text: str) -> RawFragment:
    return RawFragment(lambda _context: text)


def _escape_unless_fragment(value: Any) -> str | RawFragment:
    # Escaped eagerly so bad values fail at construction time
    if isinstance(value, RawFragment):
        return value
    return escape_literal(value)


def _part_text(part: str | RawFragment, context: Any) -> str:
    if isinstance(part, RawFragment):
        return part.resolve(context)
    return part
