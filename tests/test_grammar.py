import logging

import pytest

from hypothesis import given
from hypothesis.strategies import fixed_dictionaries

from strategies import rules_over

from grammar_ir import (
    ConflictingName,
    Diagnostics,
    DuplicateToken,
    Grammar,
    GrammarFrozen,
    GrammarState,
    MultipleValidationErrors,
    Sym,
    UndefinedSymbol,
    UnusedRule,
    UnusedToken,
    alt,
    many,
    option,
    sep_by1,
    seq,
    sym,
    symbols,
)


def test_declare_tokens():
    g = Grammar()
    g.declare_tokens(["NUM", "PLUS"])
    g.declare_tokens("MINUS")

    assert g.tokens == ("NUM", "PLUS", "MINUS")
    assert g.token_index("PLUS") == 1
    assert g.token_index("TIMES") is None


def test_duplicate_token():
    g = Grammar(tokens=["NUM", "PLUS"])

    with pytest.raises(DuplicateToken) as exc:
        g.declare_tokens(["MINUS", "NUM"])

    assert exc.value.name == "NUM"
    # Nothing from the failed call was added.
    assert g.tokens == ("NUM", "PLUS")


def test_duplicate_token_in_one_call():
    g = Grammar()
    with pytest.raises(DuplicateToken):
        g.declare_tokens(["A", "B", "A"])
    assert g.tokens == ()

    with pytest.raises(DuplicateToken):
        Grammar(tokens=["X", "X"])


def test_redefine_rule():
    g = Grammar(tokens=["NUM", "PLUS"])
    g.define_rule("expr", "NUM")
    g.define_rule("term", "NUM")
    g.define_rule("expr", sep_by1("PLUS", "NUM"))

    assert len(g.rules) == 2
    assert g.rules["expr"] == sep_by1("PLUS", "NUM")
    assert g.get_rule("term") == Sym("NUM")
    assert g.get_rule("factor") is None


def test_rules_are_read_only():
    g = Grammar(rules={"a": "A"})
    with pytest.raises(TypeError):
        g.rules["b"] = sym("B")  # type: ignore


def test_recursive_grammar_is_valid():
    """The classic LR(0) expression grammar: left recursion, and a cycle
    through parentheses.
    """
    g = Grammar(
        tokens=["PLUS", "LPAREN", "RPAREN", "ID"],
        rules={
            "E": seq("E", "PLUS", "T") | "T",
            "T": seq("LPAREN", "E", "RPAREN") | "ID",
        },
        start=["E"],
    )

    assert g.diagnose() == Diagnostics()
    assert g.state is GrammarState.OPEN

    assert g.validate() == []
    assert g.state is GrammarState.VALIDATED
    assert g.is_validated


def test_mutually_recursive_grammar_is_valid():
    g = Grammar(
        tokens=["a", "b"],
        rules=[
            ("A", seq("a", option("B"))),
            ("B", seq("b", "A")),
        ],
    )
    assert g.diagnose() == Diagnostics()


def test_separated_list_example():
    g = Grammar(tokens=["NUM", "PLUS"], rules={"expr": sep_by1("PLUS", "NUM")}, start="expr")
    assert g.validate() == []


def test_undefined_symbol_in_block():
    g = Grammar(
        tokens=["LBRACE", "RBRACE"],
        rules={"block": seq("LBRACE", many("stmt"), "RBRACE")},
    )

    diagnostics = g.diagnose()
    assert diagnostics.errors == (UndefinedSymbol("stmt", ("block", "seq[1]", "many")),)
    assert diagnostics.warnings == ()
    assert not diagnostics.ok

    with pytest.raises(MultipleValidationErrors) as exc:
        g.validate()

    assert exc.value.errors == [UndefinedSymbol("stmt", ("block", "seq[1]", "many"))]
    assert "Undefined symbol 'stmt' at block > seq[1] > many" in str(exc.value)
    assert g.state is GrammarState.OPEN


def test_diagnostics_format():
    g = Grammar(
        tokens=["LBRACE", "RBRACE", "UNUSED"],
        rules={"block": seq("LBRACE", many("stmt"), "RBRACE")},
    )

    assert g.diagnose().format() == (
        "error: Undefined symbol 'stmt' at block > seq[1] > many\n"
        "warning: Token 'UNUSED' is never referenced"
    )
    assert Diagnostics().format() == ""


def test_failed_validation_logs_diagnostics(caplog):
    g = Grammar(tokens=["A"], rules={"s": seq("A", "missing")}, name="broken")

    with caplog.at_level(logging.DEBUG, logger="grammar_ir.validate"):
        with pytest.raises(MultipleValidationErrors):
            g.validate()

    assert "Grammar broken failed validation" in caplog.text
    assert "error: Undefined symbol 'missing' at s > seq[1]" in caplog.text


def test_every_undefined_site_is_reported():
    g = Grammar(
        tokens=["NUM"],
        rules={
            "expr": alt(seq("expr", "PLUS", "term"), "term"),
            "term": alt(seq("term", "TIMES", "factor"), "factor"),
        },
    )

    with pytest.raises(MultipleValidationErrors) as exc:
        g.validate()

    assert exc.value.errors == [
        UndefinedSymbol("PLUS", ("expr", "alt[0]", "seq[1]")),
        UndefinedSymbol("TIMES", ("term", "alt[0]", "seq[1]")),
        UndefinedSymbol("factor", ("term", "alt[0]", "seq[2]")),
        UndefinedSymbol("factor", ("term", "alt[1]")),
    ]
    assert exc.value.warnings == [UnusedToken("NUM")]

    # Failing left the grammar open, so it can be fixed and tried again.
    assert g.state is GrammarState.OPEN
    g.declare_tokens(["PLUS", "TIMES"])
    g.define_rule("factor", "NUM")

    assert g.validate() == []
    assert g.state is GrammarState.VALIDATED


def test_undefined_start_rule():
    g = Grammar(tokens=["A"], rules={"a": "A"}, start=["program"])

    diagnostics = g.diagnose()
    assert diagnostics.errors == (UndefinedSymbol("program", ("<start>",)),)
    assert diagnostics.warnings == (UnusedRule("a"),)


def test_token_and_rule_with_the_same_name():
    g = Grammar(tokens=["ID"], rules={"ID": "ID"})
    assert g.diagnose().errors == (ConflictingName("ID"),)


def test_unused_warnings():
    rules = {
        "s": seq("A", "x"),
        "x": "B",
        "loop": seq("loop", "A"),
        "orphan": "B",
    }

    g = Grammar(tokens=["A", "B", "UNUSED"], rules=rules, start="s")
    diagnostics = g.diagnose()
    assert diagnostics.ok
    assert diagnostics.warnings == (
        UnusedToken("UNUSED"),
        UnusedRule("loop"),
        UnusedRule("orphan"),
    )

    # Without a start rule there is nothing to measure rule usage against.
    g = Grammar(tokens=["A", "B", "UNUSED"], rules=rules)
    assert g.diagnose().warnings == (UnusedToken("UNUSED"),)


def test_validate_logs_warnings(caplog):
    g = Grammar(tokens=["A", "UNUSED"], rules={"s": "A"}, start=["s"], name="tiny")

    with caplog.at_level(logging.WARNING, logger="grammar_ir.validate"):
        warnings = g.validate()

    assert warnings == [UnusedToken("UNUSED")]
    assert "Grammar tiny: Token 'UNUSED' is never referenced" in caplog.text


def test_validated_grammar_is_frozen():
    g = Grammar(tokens=["A"], rules={"s": "A"}, start=["s"])
    g.validate()

    with pytest.raises(GrammarFrozen):
        g.define_rule("t", "A")
    with pytest.raises(GrammarFrozen):
        g.declare_tokens(["B"])
    with pytest.raises(GrammarFrozen):
        g.set_start("t")
    with pytest.raises(GrammarFrozen):
        g.merge(Grammar())

    assert g.tokens == ("A",)
    assert list(g.rules) == ["s"]

    # Validating again is harmless.
    assert g.validate() == []


def test_merge():
    exprs = Grammar(tokens=["NUM", "PLUS"], rules={"expr": sep_by1("PLUS", "NUM")})
    stmts = Grammar(tokens=["NUM", "SEMI"], rules={"stmt": seq("expr", "SEMI")}, start=["stmt"])

    stmts.merge(exprs)

    assert stmts.tokens == ("NUM", "SEMI", "PLUS")
    assert set(stmts.rules) == {"stmt", "expr"}
    assert stmts.start == ("stmt",)
    assert stmts.validate() == []


def test_set_start_ignores_repeats():
    g = Grammar(start=["a"])
    g.set_start("b", "a")
    assert g.start == ("a", "b")


def test_equality_ignores_order():
    left = Grammar(tokens=["A", "B"], rules={"x": "A", "y": "B"})
    right = Grammar(tokens=["B", "A"], rules=[("y", "B"), ("x", "A")])
    assert left == right

    right.define_rule("y", "A")
    assert left != right


def test_format():
    g = Grammar(tokens=["NUM", "PLUS"], rules={"expr": sep_by1("PLUS", "NUM")}, start=["expr"])
    assert g.format() == "tokens: NUM PLUS\nstart: expr\nexpr = sep_by1(PLUS, NUM)"


@given(
    fixed_dictionaries(
        {
            "r0": rules_over(["A", "B", "r0", "r1", "r2"]),
            "r1": rules_over(["A", "B", "r0", "r1", "r2"]),
            "r2": rules_over(["A", "B", "r0", "r1", "r2"]),
        }
    )
)
def test_grammars_over_known_names_are_valid(rules):
    g = Grammar(tokens=["A", "B"], rules=rules)
    assert g.diagnose().errors == ()


@given(
    fixed_dictionaries(
        {
            "r0": rules_over(["A", "r0", "r1", "nope", "gone"]),
            "r1": rules_over(["A", "r0", "r1", "nope", "gone"]),
        }
    )
)
def test_one_error_per_undefined_site(rules):
    g = Grammar(tokens=["A"], rules=rules)

    expected = [
        name
        for rule in rules.values()
        for name in symbols(rule)
        if name in ("nope", "gone")
    ]
    errors = g.diagnose().errors
    assert all(isinstance(error, UndefinedSymbol) for error in errors)
    assert [error.name for error in errors] == expected
