"""Tests for template compilation and raw fragments."""

import sys

import pytest

from pgquery.errors import MalformedTemplate, UnsupportedLiteralType
from pgquery.templates import (
    RawFragment,
    SqlTemplate,
    Statement,
    as_template,
    build_statement,
    coerce_source,
    compile_template,
    identifier,
    identifiers,
    items,
    literal,
    literals,
    sql,
    template,
)


class TestSqlTemplate:
    def test_valid(self):
        tpl = SqlTemplate(["SELECT ", ""], [1])
        assert tpl.strings == ("SELECT ", "")
        assert tpl.values == (1,)

    def test_too_few_segments(self):
        with pytest.raises(MalformedTemplate):
            SqlTemplate(["SELECT "], [1])

    def test_too_many_segments(self):
        with pytest.raises(MalformedTemplate):
            SqlTemplate(["a", "b", "c"], [1])

    def test_non_string_segment(self):
        with pytest.raises(MalformedTemplate):
            SqlTemplate(["a", 5], [1])

    def test_no_values(self):
        assert compile_template(SqlTemplate(["SELECT 1"])) == Statement("SELECT 1", ())


class TestSqlFormat:
    def test_positional_fields(self):
        tpl = sql("SELECT {}::int, {}::int", 1, 3)
        assert tpl.strings == ("SELECT ", "::int, ", "::int")
        assert tpl.values == (1, 3)

    def test_named_and_numbered_fields(self):
        tpl = sql("SELECT {a}, {0}, {a}", "x", a="y")
        assert tpl.values == ("y", "x", "y")

    def test_escaped_braces(self):
        tpl = sql("SELECT '{{1,2}}'::int[]")
        assert tpl.strings == ("SELECT '{1,2}'::int[]",)
        assert tpl.values == ()

    def test_format_spec_rejected(self):
        with pytest.raises(MalformedTemplate, match="casts outside"):
            sql("SELECT {x:int}", x=1)

    def test_conversion_rejected(self):
        with pytest.raises(MalformedTemplate):
            sql("SELECT {x!r}", x=1)

    def test_missing_value(self):
        with pytest.raises(MalformedTemplate, match="No value"):
            sql("SELECT {}, {}", 1)

    def test_unbalanced_braces(self):
        with pytest.raises(MalformedTemplate):
            sql("SELECT }")


class TestCompile:
    def test_placeholders_in_order(self):
        stmt = compile_template(sql("a = {} AND b = {} AND c = {}", 1, "two", [3]))
        assert stmt.sql == "a = $1 AND b = $2 AND c = $3"
        assert stmt.params == (1, "two", [3])

    def test_repeated_value_gets_new_placeholder(self):
        stmt = compile_template(sql("{x} + {x}", x=5))
        assert stmt.sql == "$1 + $2"
        assert stmt.params == (5, 5)

    def test_fragment_spliced_without_param(self):
        tpl = sql("SELECT {} FROM {} WHERE id = {}", identifier("n"), identifier("t"), 7)
        stmt = compile_template(tpl)
        assert stmt.sql == 'SELECT "n" FROM "t" WHERE id = $1'
        assert stmt.params == (7,)

    def test_injection_attempt_stays_a_parameter(self):
        evil = "SELECT evil\"'"
        stmt = compile_template(sql("SELECT {}::text", evil))
        assert evil not in stmt.sql
        assert stmt.params == (evil,)

    def test_fragment_segment_is_resolved(self):
        tpl = SqlTemplate([identifier("t"), " WHERE x = ", ""], [template(" AS u"), 1])
        stmt = compile_template(tpl)
        assert stmt.sql == '"t" AS u WHERE x = $1'
        assert stmt.params == (1,)

    def test_context_passed_to_fragments(self):
        seen = []
        frag = RawFragment(lambda ctx: seen.append(ctx) or "X")
        compile_template(sql("SELECT {}", frag), context="conn")
        assert seen == ["conn"]


class TestBuildStatement:
    def test_plain_string(self):
        assert build_statement("SELECT $1", [1]) == Statement("SELECT $1", (1,))

    def test_template(self):
        assert build_statement(sql("SELECT {}", 1)) == Statement("SELECT $1", (1,))

    def test_fragment(self):
        assert build_statement(template("SELECT {}", 1)) == Statement("SELECT 1", ())

    def test_params_with_template_rejected(self):
        with pytest.raises(TypeError):
            build_statement(sql("SELECT {}", 1), [2])

    def test_unknown_source(self):
        with pytest.raises(MalformedTemplate):
            build_statement(42)


class TestCoerceSource:
    def test_string_passes_through(self):
        assert coerce_source("SELECT $1", [1]) == "SELECT $1"

    def test_fragment_passes_through(self):
        fragment = identifier("t")
        assert coerce_source(fragment) is fragment

    def test_template_is_not_compiled(self):
        tpl = sql("SELECT {}", 1)
        assert coerce_source(tpl) is tpl

    def test_unknown_source(self):
        with pytest.raises(MalformedTemplate):
            coerce_source(42)

    def test_params_with_fragment_rejected(self):
        with pytest.raises(TypeError):
            coerce_source(identifier("t"), [1])


class TestFragments:
    def test_identifier(self):
        assert identifier('weird " string').resolve() == '"weird "" string"'

    def test_identifiers(self):
        assert identifiers(['a"a\\']).resolve() == '"a""a\\"'
        assert identifiers(["s", "t"], sep=".").resolve() == '"s"."t"'

    def test_literal(self):
        assert literal("a'a\\").resolve() == " E'a''a\\\\'"

    def test_literals(self):
        assert literals(["a", 1, None]).resolve() == "'a', 1, null"

    def test_literal_rejects_bad_type_eagerly(self):
        with pytest.raises(UnsupportedLiteralType):
            literal(object())

    def test_items_mixes_fragments_and_literals(self):
        frag = items([1, "2", template("COALESCE(3, 4)")])
        assert frag.resolve() == "1, '2', COALESCE(3, 4)"

    def test_items_separator(self):
        assert items([identifier("a"), 1], sep=" = ").resolve() == '"a" = 1'

    def test_fragments_are_immutable(self):
        frag = identifier("a")
        with pytest.raises(AttributeError):
            frag._resolver = lambda ctx: "DROP TABLE x"


class TestTemplateFragment:
    def test_values_inlined_as_literals(self):
        tpl = template("SELECT {} AS a, {} AS {}", 1, [1, 2, 3], identifier("b"))
        assert tpl.resolve() == 'SELECT 1 AS a, Array[1, 2, 3] AS "b"'

    def test_nested_templates(self):
        subquery = template("SELECT {} AS {}", 1, identifier("a"))
        query = template(
            "SELECT {b}.{a} FROM ({sub}) AS {b}",
            a=identifier("a"),
            b=identifier("b"),
            sub=subquery,
        )
        assert query.resolve() == 'SELECT "b"."a" FROM (SELECT 1 AS "a") AS "b"'

    def test_nested_in_parameterized_query(self):
        sub = template("SELECT id FROM t WHERE kind = {}", "x")
        stmt = compile_template(sql("SELECT * FROM u WHERE id IN ({}) AND n = {}", sub, 3))
        assert stmt.sql == (
            "SELECT * FROM u WHERE id IN (SELECT id FROM t WHERE kind = 'x') AND n = $1"
        )
        assert stmt.params == (3,)

    def test_from_sql_template(self):
        assert template(SqlTemplate(["SELECT ", ""], ["x"])).resolve() == "SELECT 'x'"

    def test_bad_value_fails_at_construction(self):
        with pytest.raises(UnsupportedLiteralType):
            template("SELECT {}", {"a": 1})

    def test_format_args_need_format_string(self):
        with pytest.raises(TypeError):
            template(SqlTemplate(["SELECT 1"]), 1)


@pytest.mark.skipif(sys.version_info < (3, 14), reason="t-strings need Python 3.14")
class TestTStrings:
    def test_t_string_compiles(self):
        tpl = eval('t"SELECT {1}::int AS a"')
        assert compile_template(as_template(tpl)) == Statement("SELECT $1::int AS a", (1,))

    def test_t_string_format_spec_rejected(self):
        tpl = eval('t"SELECT {1:d}"')
        with pytest.raises(MalformedTemplate):
            as_template(tpl)
