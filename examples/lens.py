"""Lens: a small expression language, described with grammar_ir.

Binary operators carry their precedence on the rule itself; larger levels
bind tighter.
"""

from grammar_ir import *

TOKENS = [
    "TRUE", "FALSE", "NUMBER", "NAME",
    "FN", "FAT_ARROW",
    "COMMA", "LPAREN", "RPAREN", "LCURLY", "RCURLY", "LSQUARE", "RSQUARE",
    "SEMICOLON", "EQUAL", "DOT",
    "PLUS", "MINUS", "STAR", "SLASH",
    "COLON_EQUAL", "PLUS_EQUAL", "MINUS_EQUAL", "STAR_EQUAL", "SLASH_EQUAL",
    "GREATER", "GREATER_EQUAL", "LESSER", "LESSER_EQUAL", "EQUAL_EQUAL",
    "AND", "OR",
    "DO", "IF", "THEN", "END", "WHILE", "VAR", "WITH", "YIELD",
]  # fmt: skip


def _binary(level: int, *operators: str) -> Rule:
    return prec(level, seq("expression", alt(*operators), "expression"), assoc=Assoc.LEFT)


RULES = {
    "expression": alt(
        sym("TRUE") | "FALSE" | "NUMBER" | "NAME",
        seq("LPAREN", "expression", "RPAREN"),
        "binary_expression",
        "object_expression",
        "with_expression",
        "function_expression",
        "invoke_expression",
        "member_expression",
        "statement_block_expression",
    ),
    "binary_expression": alt(
        _binary(1, "OR"),
        _binary(2, "AND"),
        _binary(3, "EQUAL_EQUAL", "LESSER_EQUAL", "LESSER", "GREATER_EQUAL", "GREATER"),
        _binary(4, "PLUS", "MINUS"),
        _binary(5, "STAR", "SLASH"),
    ),
    "object_expression": seq("LCURLY", many("value_pair", option("COMMA")), "RCURLY"),
    "value_pair": seq("value_name", option("EQUAL", "expression")),
    "value_name": sym("NAME") | seq("LSQUARE", "expression", "RSQUARE"),
    "with_expression": seq("WITH", "object_expression", "YIELD", "expression"),
    "function_expression": seq("FN", option("param_list"), "FAT_ARROW", "expression"),
    "param_list": seq(sep_by1("COMMA", "NAME"), option("COMMA")),
    "invoke_expression": prec(
        6,
        seq("expression", "LPAREN", sep_by("COMMA", "expression"), "RPAREN"),
        assoc=Assoc.LEFT,
    ),
    "member_expression": prec(7, seq("expression", "DOT", "NAME"), assoc=Assoc.LEFT),
    "statement_block_expression": seq("DO", "statement_list", "YIELD", "expression"),
    "statement_list": many("statement"),
    "statement": alt(
        "assignment_statement",
        "if_statement",
        "declaration_statement",
        "while_loop",
    ),
    "assignment_statement": seq(
        "NAME",
        alt("COLON_EQUAL", "PLUS_EQUAL", "MINUS_EQUAL", "STAR_EQUAL", "SLASH_EQUAL"),
        "expression",
        "SEMICOLON",
    ),
    "if_statement": seq("IF", "expression", "THEN", "statement_list", "END"),
    "declaration_statement": seq("VAR", "NAME", "COLON_EQUAL", "expression", "SEMICOLON"),
    "while_loop": seq("WHILE", "expression", "DO", "statement_list", "END"),
}


def lens_grammar() -> Grammar:
    return Grammar(tokens=TOKENS, rules=RULES, start=["expression"], name="Lens")
