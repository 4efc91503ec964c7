"""Lower a grammar into plain BNF.

Table generators work from a very flat set of productions: a name, and a list
of symbols that it can be replaced with. This module turns the rule trees of a
validated `Grammar` into that form.

Repetitions, options and separated lists become left-recursive nonterminals:

    many(x)         N -> <empty>      | N x
    some(x)         N -> x            | N x
    option(x)       N -> <empty>      | x
    sep_by(s, x)    N -> <empty>      | sep_by1(s, x)
    sep_by1(s, x)   N -> x            | N s x

Each production remembers which of these it came from (its `ProdAction`), so
that whatever builds trees from the parse can splice the lists back together.

Any rule that shows up where a single symbol is needed (say, the `a | b` in
`seq(x, a | b)`) gets a nonterminal of its own, named `__gen_<rule>_<n>`
after the rule it was found in.
"""

import dataclasses
import enum
import logging
import typing

from .errors import GrammarError
from .grammar import Grammar, GrammarState
from .rules import (
    AnyRule,
    Assoc,
    Many,
    Option,
    Or,
    Prec,
    SepBy,
    SepBy1,
    Seq,
    Some,
    Sym,
)

__all__ = ["ProdAction", "Production", "Nonterminal", "Bnf", "lower"]

lower_log = logging.getLogger("grammar_ir.bnf")


class ProdAction(enum.Enum):
    """How a production was derived from its rule."""

    NONE = 0
    # rule*  ->  <empty>
    START_MANY = 1
    # rule*  ->  rule* rule
    CONTINUE_MANY = 2
    # rule+  ->  rule
    START_SOME = 3
    # rule+  ->  rule+ rule
    CONTINUE_SOME = 4
    # rule?  ->  <empty>
    EMPTY_OPTION = 5
    # rule?  ->  rule
    NONEMPTY_OPTION = 6
    # sep_by(sep, rule)  ->  <empty>
    EMPTY_SEP_BY = 7
    # sep_by(sep, rule)  ->  sep_by1(sep, rule)
    NONEMPTY_SEP_BY = 8
    # sep_by1(sep, rule)  ->  rule
    START_SEP_BY1 = 9
    # sep_by1(sep, rule)  ->  sep_by1(sep, rule) sep rule
    CONTINUE_SEP_BY1 = 10


@dataclasses.dataclass(frozen=True)
class Production:
    symbols: tuple[str, ...]
    action: ProdAction = ProdAction.NONE
    prec: int | None = None
    assoc: Assoc = Assoc.NONE

    def format(self) -> str:
        result = " ".join(self.symbols) if len(self.symbols) > 0 else "<empty>"
        if self.prec is not None:
            result += f"  [prec {self.prec}"
            if self.assoc != Assoc.NONE:
                result += f" {self.assoc.name.lower()}"
            result += "]"
        return result


@dataclasses.dataclass
class Nonterminal:
    name: str
    productions: list[Production] = dataclasses.field(default_factory=list)
    generated: bool = False


@dataclasses.dataclass
class Bnf:
    tokens: list[str]
    start: list[str]
    nonterminals: dict[str, Nonterminal]

    def productions(self) -> list[tuple[str, list[str]]]:
        """The flat list of (name, symbols) pairs, in order."""
        return [
            (nonterminal.name, list(production.symbols))
            for nonterminal in self.nonterminals.values()
            for production in nonterminal.productions
        ]

    def format(self) -> str:
        lines = []
        for nonterminal in self.nonterminals.values():
            for production in nonterminal.productions:
                lines.append(f"{nonterminal.name} -> {production.format()}")
        return "\n".join(lines)


class _Lowering:
    nonterminals: dict[str, Nonterminal]
    _taken: set[str]
    _gen_index: dict[str, int]

    def __init__(self, grammar: Grammar):
        self.nonterminals = {}
        self._taken = set(grammar.tokens) | set(grammar.rules)
        self._gen_index = {}

    def gen_name(self, owner: str) -> str:
        while True:
            index = self._gen_index.get(owner, 0)
            self._gen_index[owner] = index + 1
            name = f"__gen_{owner}_{index}"
            if name not in self._taken:
                self._taken.add(name)
                return name

    def nonterminal(self, name: str, rule: AnyRule, owner: str, generated: bool = False):
        # Add the nonterminal before lowering its body, so that nonterminals
        # come out in the order they were started.
        nonterminal = Nonterminal(name, generated=generated)
        self.nonterminals[name] = nonterminal
        nonterminal.productions.extend(self.productions(name, rule, owner))

    def productions(self, name: str, rule: AnyRule, owner: str) -> list[Production]:
        match rule:
            case Sym() | Seq():
                return [self.production(rule, ProdAction.NONE, owner)]

            case Or(rules=rules):
                return [self.production(r, ProdAction.NONE, owner) for r in rules]

            case Many(rule=r):
                symbol = self.symbol(r, owner)
                return [
                    Production((), ProdAction.START_MANY),
                    Production((name, symbol), ProdAction.CONTINUE_MANY),
                ]

            case Some(rule=r):
                symbol = self.symbol(r, owner)
                return [
                    Production((symbol,), ProdAction.START_SOME),
                    Production((name, symbol), ProdAction.CONTINUE_SOME),
                ]

            case Option(rule=r):
                return [
                    Production((), ProdAction.EMPTY_OPTION),
                    self.production(r, ProdAction.NONEMPTY_OPTION, owner),
                ]

            case SepBy(sep=sep, rule=r):
                return [
                    Production((), ProdAction.EMPTY_SEP_BY),
                    self.production(SepBy1(sep, r), ProdAction.NONEMPTY_SEP_BY, owner),
                ]

            case SepBy1(sep=sep, rule=r):
                sep_symbol = self.symbol(sep, owner)
                symbol = self.symbol(r, owner)
                return [
                    Production((symbol,), ProdAction.START_SEP_BY1),
                    Production((name, sep_symbol, symbol), ProdAction.CONTINUE_SEP_BY1),
                ]

            case Prec(level=level, assoc=assoc, rule=r):
                return [
                    dataclasses.replace(production, prec=level, assoc=assoc)
                    for production in self.productions(name, r, owner)
                ]

            case _:
                typing.assert_never(rule)

    def production(self, rule: AnyRule, action: ProdAction, owner: str) -> Production:
        match rule:
            case Seq(rules=rules):
                return Production(tuple(self.symbol(r, owner) for r in rules), action)

            case Prec(level=level, assoc=assoc, rule=r):
                production = self.production(r, action, owner)
                return dataclasses.replace(production, prec=level, assoc=assoc)

            case _:
                return Production((self.symbol(rule, owner),), action)

    def symbol(self, rule: AnyRule, owner: str) -> str:
        if isinstance(rule, Sym):
            return rule.name

        # A Prec here gets a nonterminal of its own, even around a plain
        # symbol, so the precedence never leaks onto a named rule.
        name = self.gen_name(owner)
        self.nonterminal(name, rule, owner, generated=True)

        ll = lower_log
        if ll.isEnabledFor(logging.DEBUG):
            ll.debug(f"{name} generated for `{rule}` in {owner}")

        return name


def lower(grammar: Grammar) -> Bnf:
    """Convert a grammar into BNF.

    An open grammar is validated first (which may raise
    MultipleValidationErrors). The grammar needs at least one start rule.
    """
    if len(grammar.start) == 0:
        raise GrammarError(f"Grammar {grammar.name} has no start rule")

    if grammar.state is GrammarState.OPEN:
        grammar.validate()

    lowering = _Lowering(grammar)
    for name, rule in grammar.rules.items():
        lowering.nonterminal(name, rule, name)

    ll = lower_log
    if ll.isEnabledFor(logging.DEBUG):
        generated = sum(1 for nt in lowering.nonterminals.values() if nt.generated)
        ll.debug(
            f"Lowered grammar {grammar.name}: {len(lowering.nonterminals)} nonterminals "
            f"({generated} generated)"
        )

    return Bnf(
        tokens=list(grammar.tokens),
        start=list(grammar.start),
        nonterminals=lowering.nonterminals,
    )
