"""The Grammar container: a set of tokens, a table of named rules, and the
checks that make sure they fit together.

    g = Grammar(tokens=["NUM", "PLUS"], start=["expr"])
    g.define_rule("expr", sep_by1("PLUS", "NUM"))
    g.validate()

A grammar starts out open. You can declare tokens and (re)define rules in any
order you like, and rules may refer to things that don't exist yet. Once
everything is in place, `validate` checks every reference in every rule and
either raises an error listing *all* of the problems, or freezes the grammar
so that it can be handed to a generator.
"""

import collections.abc
import enum
import logging
import types
import typing

from .errors import (
    ConflictingName,
    Diagnostics,
    DuplicateToken,
    GrammarFrozen,
    MultipleValidationErrors,
    UndefinedSymbol,
    UnusedRule,
    UnusedToken,
    ValidationError,
    ValidationWarning,
)
from .rules import AnyRule, RuleLike, Sym, coerce, format_rule, walk

__all__ = ["Grammar", "GrammarState"]

validate_log = logging.getLogger("grammar_ir.validate")

START_PATH = "<start>"


class GrammarState(enum.Enum):
    OPEN = "open"
    VALIDATED = "validated"


def _names(names: str | typing.Iterable[str]) -> list[str]:
    if isinstance(names, str):
        return [names]

    result = list(names)
    for name in result:
        if not isinstance(name, str):
            raise TypeError(f"Names must be strings, got {name!r}")
    return result


class Grammar:
    """A set of tokens plus a table of rules, keyed by name.

    `tokens` and `start` are lists of names, `rules` is a mapping (or a list
    of pairs) from rule name to rule. `name` is only used for messages.

    Tokens are kept in the order they were declared; rules in the order they
    were first defined. Neither order means anything to the grammar itself,
    so two grammars with the same tokens, rules and start rules are equal.
    """

    name: str
    state: GrammarState
    _tokens: dict[str, int]
    _rules: dict[str, AnyRule]
    _start: list[str]

    def __init__(
        self,
        tokens: str | typing.Iterable[str] = (),
        rules: (
            collections.abc.Mapping[str, RuleLike]
            | typing.Iterable[tuple[str, RuleLike]]
            | None
        ) = None,
        start: str | typing.Iterable[str] = (),
        name: str | None = None,
    ):
        if name is None:
            name = "unknown"

        self.name = name
        self.state = GrammarState.OPEN
        # NOTE: Token indices are just their declaration order; a dict keeps
        #       that order and gives us fast membership at the same time.
        self._tokens = {}
        self._rules = {}
        self._start = []

        self.declare_tokens(tokens)
        if rules is not None:
            if isinstance(rules, collections.abc.Mapping):
                rules = rules.items()
            for rule_name, rule in rules:
                self.define_rule(rule_name, rule)
        self.set_start(*_names(start))

    @property
    def tokens(self) -> tuple[str, ...]:
        return tuple(self._tokens)

    @property
    def rules(self) -> collections.abc.Mapping[str, AnyRule]:
        return types.MappingProxyType(self._rules)

    @property
    def start(self) -> tuple[str, ...]:
        return tuple(self._start)

    @property
    def is_validated(self) -> bool:
        return self.state is GrammarState.VALIDATED

    def token_index(self, name: str) -> int | None:
        return self._tokens.get(name)

    def get_rule(self, name: str) -> AnyRule | None:
        return self._rules.get(name)

    def _check_open(self, operation: str):
        if self.state is not GrammarState.OPEN:
            raise GrammarFrozen(operation)

    def declare_tokens(self, names: str | typing.Iterable[str]):
        """Add tokens to the grammar.

        Raises DuplicateToken if any of the names is already a token (or is
        repeated in `names`), in which case none of them are added.
        """
        self._check_open("declare tokens")

        names = _names(names)
        seen: set[str] = set()
        for name in names:
            if name in self._tokens or name in seen:
                raise DuplicateToken(name)
            seen.add(name)

        for name in names:
            self._tokens[name] = len(self._tokens)

    def define_rule(self, name: str, rule: RuleLike):
        """Define the rule called `name`, replacing any previous definition."""
        self._check_open("define rules")
        if not isinstance(name, str):
            raise TypeError(f"Rule names must be strings, got {name!r}")
        self._rules[name] = coerce(rule)

    def set_start(self, *names: str):
        """Designate start rules. Names already designated are ignored."""
        self._check_open("set start rules")
        for name in _names(names):
            if name not in self._start:
                self._start.append(name)

    def merge(self, other: "Grammar"):
        """Fold a separately-built grammar into this one.

        Tokens that both grammars declare are shared. Rules from `other` are
        defined here in order, so they replace rules of the same name.
        """
        self._check_open("merge grammars")
        self.declare_tokens([name for name in other.tokens if name not in self._tokens])
        for name, rule in other.rules.items():
            self.define_rule(name, rule)
        self.set_start(*other.start)

    def diagnose(self) -> Diagnostics:
        """Check the grammar without changing it.

        Every symbol in every rule is checked, so the result has one
        UndefinedSymbol for each place a missing name is used. Warnings are
        produced for tokens nothing uses and, if there are start rules, for
        rules that no other rule uses.
        """
        errors: list[ValidationError] = []
        warnings: list[ValidationWarning] = []

        # The rules that refer to each name.
        users: dict[str, set[str]] = {}

        for rule_name, rule in self._rules.items():
            for path, node in walk(rule, (rule_name,)):
                if not isinstance(node, Sym):
                    continue

                users.setdefault(node.name, set()).add(rule_name)
                if node.name not in self._tokens and node.name not in self._rules:
                    errors.append(UndefinedSymbol(node.name, path))

        for name in self._start:
            if name not in self._rules:
                errors.append(UndefinedSymbol(name, (START_PATH,)))

        for name in self._tokens:
            if name in self._rules:
                errors.append(ConflictingName(name))

        for name in self._tokens:
            if name not in users:
                warnings.append(UnusedToken(name))

        if len(self._start) > 0:
            for name in self._rules:
                if name in self._start:
                    continue
                if len(users.get(name, set()) - {name}) == 0:
                    warnings.append(UnusedRule(name))

        return Diagnostics(errors=tuple(errors), warnings=tuple(warnings))

    def validate(self) -> list[ValidationWarning]:
        """Check the grammar, and freeze it if there is nothing wrong.

        On failure this raises MultipleValidationErrors with every error found,
        and the grammar stays open so that it can be fixed. On success the
        warnings are logged and returned.
        """
        diagnostics = self.diagnose()

        vl = validate_log
        if not diagnostics.ok:
            if vl.isEnabledFor(logging.DEBUG):
                vl.debug(f"Grammar {self.name} failed validation:\n{diagnostics.format()}")
            raise MultipleValidationErrors(diagnostics.errors, diagnostics.warnings)

        for warning in diagnostics.warnings:
            vl.warning("Grammar %s: %s", self.name, warning)

        self.state = GrammarState.VALIDATED
        if vl.isEnabledFor(logging.DEBUG):
            vl.debug(
                f"Grammar {self.name} validated: {len(self._tokens)} tokens, "
                f"{len(self._rules)} rules"
            )
        return list(diagnostics.warnings)

    def format(self) -> str:
        """Format the grammar so pretty."""
        lines = []
        if len(self._tokens) > 0:
            lines.append("tokens: " + " ".join(self._tokens))
        if len(self._start) > 0:
            lines.append("start: " + " ".join(self._start))
        for name, rule in self._rules.items():
            lines.append(f"{name} = {format_rule(rule)}")
        return "\n".join(lines)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Grammar):
            return NotImplemented
        return (
            set(self._tokens) == set(other._tokens)
            and self._rules == other._rules
            and self._start == other._start
        )

    __hash__ = None  # type: ignore

    def __repr__(self) -> str:
        return (
            f"Grammar(name={self.name!r}, tokens={len(self._tokens)}, "
            f"rules={len(self._rules)}, state={self.state.value})"
        )
