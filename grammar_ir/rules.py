"""The rule algebra.

A grammar rule is a small tree. The leaves are symbols (`Sym`), which name
either a token or another rule; everything else combines sub-rules:

    expression = alt(
        prec(1, seq("expression", "PLUS", "expression"), assoc=Assoc.LEFT),
        prec(2, seq("expression", "TIMES", "expression"), assoc=Assoc.LEFT),
        seq("LPAREN", "expression", "RPAREN"),
        "NUMBER",
    )

Rules are frozen dataclasses: build them bottom-up with the constructor
functions (`seq`, `alt`, `many`, ...) or the `|` and `+` operators, and
compare them structurally. A plain string anywhere a rule is expected is
shorthand for `sym(string)`.

A symbol is only ever a *reference*. Nothing here checks that the name means
anything; that happens when the rules are put in a `Grammar` and validated.
This is what lets rules refer to themselves, or to rules that have not been
written yet.
"""

import dataclasses
import enum
import typing

from .errors import InvalidArity

__all__ = [
    "Assoc",
    "Rule",
    "Sym",
    "Seq",
    "Or",
    "Many",
    "Some",
    "Option",
    "SepBy",
    "SepBy1",
    "Prec",
    "AnyRule",
    "RuleLike",
    "coerce",
    "sym",
    "seq",
    "alt",
    "many",
    "some",
    "option",
    "sep_by",
    "sep_by1",
    "prec",
    "branches",
    "children",
    "walk",
    "symbols",
    "expand_separated",
    "format_rule",
]


class Assoc(enum.Enum):
    """Associativity of a precedence level."""

    NONE = 0
    LEFT = 1
    RIGHT = 2


class Rule:
    """The base of every rule variant.

    Only provides the operators; the variants themselves are the dataclasses
    below.
    """

    def __or__(self, other: "RuleLike") -> "Or":
        return _join(Or, typing.cast(AnyRule, self), coerce(other))

    def __ror__(self, other: "RuleLike") -> "Or":
        return _join(Or, coerce(other), typing.cast(AnyRule, self))

    def __add__(self, other: "RuleLike") -> "Seq":
        return _join(Seq, typing.cast(AnyRule, self), coerce(other))

    def __radd__(self, other: "RuleLike") -> "Seq":
        return _join(Seq, coerce(other), typing.cast(AnyRule, self))

    def __str__(self) -> str:
        return format_rule(typing.cast(AnyRule, self))


@dataclasses.dataclass(frozen=True)
class Sym(Rule):
    """A reference to a token or to another rule, by name."""

    name: str


@dataclasses.dataclass(frozen=True)
class Seq(Rule):
    """Match every sub-rule, in order. An empty sequence matches nothing."""

    rules: tuple["AnyRule", ...]

    def __post_init__(self):
        object.__setattr__(self, "rules", tuple(self.rules))


@dataclasses.dataclass(frozen=True)
class Or(Rule):
    """Match one of the alternatives. Earlier alternatives have priority."""

    rules: tuple["AnyRule", ...]

    def __post_init__(self):
        object.__setattr__(self, "rules", tuple(self.rules))
        if len(self.rules) == 0:
            raise InvalidArity("Or", 0)


@dataclasses.dataclass(frozen=True)
class Many(Rule):
    rule: "AnyRule"


@dataclasses.dataclass(frozen=True)
class Some(Rule):
    rule: "AnyRule"


@dataclasses.dataclass(frozen=True)
class Option(Rule):
    rule: "AnyRule"


@dataclasses.dataclass(frozen=True)
class SepBy(Rule):
    """Zero or more `rule`, with `sep` between them (but not after the last)."""

    sep: "AnyRule"
    rule: "AnyRule"


@dataclasses.dataclass(frozen=True)
class SepBy1(Rule):
    """Like SepBy, but at least one `rule` is required."""

    sep: "AnyRule"
    rule: "AnyRule"


@dataclasses.dataclass(frozen=True)
class Prec(Rule):
    """Annotate a rule with a precedence level and associativity.

    This does not change what the rule matches. The level and associativity
    are handed to the generator as-is, to be used when it resolves
    ambiguities.
    """

    level: int
    assoc: Assoc
    rule: "AnyRule"


AnyRule = Sym | Seq | Or | Many | Some | Option | SepBy | SepBy1 | Prec
RuleLike = AnyRule | str


def coerce(rule: RuleLike) -> AnyRule:
    """Accept a rule, or a string as shorthand for a symbol."""
    if isinstance(rule, Rule):
        return typing.cast(AnyRule, rule)
    if isinstance(rule, str):
        return Sym(rule)
    raise TypeError(f"Expected a rule or a symbol name, got {rule!r}")


def _join(cls: type[Seq] | type[Or], left: AnyRule, right: AnyRule):
    # Keep chains like `a | b | c` one level deep.
    parts: list[AnyRule] = []
    for part in (left, right):
        if isinstance(part, cls):
            parts.extend(part.rules)
        else:
            parts.append(part)
    return cls(tuple(parts))


def _body(constructor: str, rules: tuple[RuleLike, ...]) -> AnyRule:
    if len(rules) == 0:
        raise InvalidArity(constructor, 0)
    if len(rules) == 1:
        return coerce(rules[0])
    return seq(*rules)


###############################################################################
# Constructors
###############################################################################


def sym(name: str) -> Sym:
    """A reference to the token or rule called `name`."""
    if not isinstance(name, str):
        raise TypeError(f"Symbol names must be strings, got {name!r}")
    return Sym(name)


def seq(*rules: RuleLike) -> Seq:
    """A rule that matches a sequence of rules."""
    return Seq(tuple(coerce(rule) for rule in rules))


def alt(*rules: RuleLike) -> Or:
    """A rule that matches one of a series of alternatives.

    There has to be at least one alternative. `alt(x)` is a one-way choice,
    which is not the same thing as `x`.
    """
    if len(rules) == 0:
        raise InvalidArity("alt", 0)
    return Or(tuple(coerce(rule) for rule in rules))


def many(*rules: RuleLike) -> Many:
    """Zero or more repetitions. Several arguments are repeated as a sequence."""
    return Many(_body("many", rules))


def some(*rules: RuleLike) -> Some:
    """One or more repetitions. Several arguments are repeated as a sequence."""
    return Some(_body("some", rules))


def option(*rules: RuleLike) -> Option:
    """Mark a rule (or a sequence) as optional."""
    return Option(_body("option", rules))


def _separated(constructor: str, rules: tuple[RuleLike, ...]) -> tuple[AnyRule, AnyRule]:
    if len(rules) != 2:
        raise InvalidArity(constructor, len(rules), "a separator and a rule")
    return (coerce(rules[0]), coerce(rules[1]))


def sep_by(*rules: RuleLike) -> SepBy:
    """sep_by(sep, rule): zero or more `rule`, separated by `sep`."""
    return SepBy(*_separated("sep_by", rules))


def sep_by1(*rules: RuleLike) -> SepBy1:
    """sep_by1(sep, rule): one or more `rule`, separated by `sep`."""
    return SepBy1(*_separated("sep_by1", rules))


def prec(level: int, *rules: RuleLike, assoc: Assoc = Assoc.NONE) -> Prec:
    """Attach a precedence level (and optionally an associativity) to a rule."""
    if len(rules) != 1:
        raise InvalidArity("prec", len(rules), "exactly one rule")
    if isinstance(level, bool) or not isinstance(level, int):
        raise TypeError(f"Precedence levels must be integers, got {level!r}")
    if not isinstance(assoc, Assoc):
        raise TypeError(f"Expected an Assoc, got {assoc!r}")
    return Prec(level, assoc, coerce(rules[0]))


###############################################################################
# Looking at rules
###############################################################################


def branches(rule: AnyRule) -> list[tuple[str, AnyRule]]:
    """The sub-rules of a rule, each labelled with the position it occupies.

    The labels are what make up validation paths, e.g. `seq[1]` for the
    second element of a sequence.
    """
    match rule:
        case Sym():
            return []
        case Seq(rules=rules):
            return [(f"seq[{i}]", r) for i, r in enumerate(rules)]
        case Or(rules=rules):
            return [(f"alt[{i}]", r) for i, r in enumerate(rules)]
        case Many(rule=r):
            return [("many", r)]
        case Some(rule=r):
            return [("some", r)]
        case Option(rule=r):
            return [("option", r)]
        case SepBy(sep=sep, rule=r):
            return [("sep_by.sep", sep), ("sep_by.rule", r)]
        case SepBy1(sep=sep, rule=r):
            return [("sep_by1.sep", sep), ("sep_by1.rule", r)]
        case Prec(rule=r):
            return [("prec", r)]
        case _:
            typing.assert_never(rule)


def children(rule: AnyRule) -> tuple[AnyRule, ...]:
    return tuple(child for _, child in branches(rule))


def walk(
    rule: AnyRule, path: typing.Sequence[str] = ()
) -> typing.Generator[tuple[tuple[str, ...], AnyRule], None, None]:
    """Visit every node of a rule tree, parents before children, left to right.

    Yields (path, node) pairs, where the path is `path` followed by the
    position labels leading down to the node. Symbols are leaves: a reference
    to another rule is never followed, so this always terminates, even for
    recursive grammars.
    """
    stack: list[tuple[tuple[str, ...], AnyRule]] = [(tuple(path), rule)]
    while len(stack) > 0:
        node_path, node = stack.pop()
        yield (node_path, node)

        for step, child in reversed(branches(node)):
            stack.append((node_path + (step,), child))


def symbols(rule: AnyRule) -> list[str]:
    """Every symbol name referenced by the rule, in order, repeats included."""
    return [node.name for _, node in walk(rule) if isinstance(node, Sym)]


def expand_separated(rule: AnyRule) -> AnyRule:
    """Rewrite the separated-list variants in terms of the others.

        sep_by1(s, x)  =>  seq(x, many(s, x))
        sep_by(s, x)   =>  option(x, many(s, x))

    Generators that don't want to handle SepBy and SepBy1 themselves can run
    their rules through this first.
    """
    match rule:
        case Sym():
            return rule
        case Seq(rules=rules):
            return Seq(tuple(expand_separated(r) for r in rules))
        case Or(rules=rules):
            return Or(tuple(expand_separated(r) for r in rules))
        case Many(rule=r):
            return Many(expand_separated(r))
        case Some(rule=r):
            return Some(expand_separated(r))
        case Option(rule=r):
            return Option(expand_separated(r))
        case SepBy(sep=sep, rule=r):
            sep, r = expand_separated(sep), expand_separated(r)
            return option(r, many(sep, r))
        case SepBy1(sep=sep, rule=r):
            sep, r = expand_separated(sep), expand_separated(r)
            return seq(r, many(sep, r))
        case Prec(level=level, assoc=assoc, rule=r):
            return Prec(level, assoc, expand_separated(r))
        case _:
            typing.assert_never(rule)


def _operand(rule: AnyRule, grouped: tuple[type, ...]) -> str:
    result = format_rule(rule)
    if isinstance(rule, grouped) and not (isinstance(rule, Seq) and len(rule.rules) == 0):
        result = f"({result})"
    return result


def format_rule(rule: AnyRule) -> str:
    """Format a rule in an EBNF-ish notation, for people to read."""
    match rule:
        case Sym(name=name):
            return name
        case Seq(rules=rules):
            if len(rules) == 0:
                return "()"
            return " ".join(_operand(r, (Seq, Or)) for r in rules)
        case Or(rules=rules):
            return " | ".join(_operand(r, (Or,)) for r in rules)
        case Many(rule=r):
            return _operand(r, (Seq, Or)) + "*"
        case Some(rule=r):
            return _operand(r, (Seq, Or)) + "+"
        case Option(rule=r):
            return _operand(r, (Seq, Or)) + "?"
        case SepBy(sep=sep, rule=r):
            return f"sep_by({format_rule(sep)}, {format_rule(r)})"
        case SepBy1(sep=sep, rule=r):
            return f"sep_by1({format_rule(sep)}, {format_rule(r)})"
        case Prec(level=level, assoc=assoc, rule=r):
            if assoc == Assoc.NONE:
                return f"prec({level}, {format_rule(r)})"
            return f"prec({level}, {assoc.name.lower()}, {format_rule(r)})"
        case _:
            typing.assert_never(rule)
