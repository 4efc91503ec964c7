"""Errors raised while building grammars, and the diagnostic records that
validation produces.

Everything raised on purpose is a `GrammarError`, which is a `ValueError`:
grammar mistakes are bad values handed to us by the grammar author.
"""

import dataclasses
import typing

__all__ = [
    "GrammarError",
    "InvalidArity",
    "DuplicateToken",
    "GrammarFrozen",
    "UndefinedSymbol",
    "ConflictingName",
    "UnusedToken",
    "UnusedRule",
    "ValidationError",
    "ValidationWarning",
    "Diagnostics",
    "MultipleValidationErrors",
]


class GrammarError(ValueError):
    pass


class InvalidArity(GrammarError):
    """A rule constructor was called with the wrong number of rules."""

    constructor: str
    count: int

    def __init__(self, constructor: str, count: int, expected: str = "at least one rule"):
        self.constructor = constructor
        self.count = count
        super().__init__(f"{constructor}() takes {expected}, got {count}")


class DuplicateToken(GrammarError):
    name: str

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Token {name} is already declared")


class GrammarFrozen(GrammarError):
    """The grammar has been validated and can no longer be changed."""

    def __init__(self, operation: str):
        super().__init__(f"Cannot {operation}: the grammar has already been validated")


@dataclasses.dataclass(frozen=True)
class UndefinedSymbol:
    name: str
    path: tuple[str, ...]

    def __str__(self):
        return f"Undefined symbol '{self.name}' at {format_path(self.path)}"


@dataclasses.dataclass(frozen=True)
class ConflictingName:
    name: str

    def __str__(self):
        return f"'{self.name}' is declared as a token and also defined as a rule"


@dataclasses.dataclass(frozen=True)
class UnusedToken:
    name: str

    def __str__(self):
        return f"Token '{self.name}' is never referenced"


@dataclasses.dataclass(frozen=True)
class UnusedRule:
    name: str

    def __str__(self):
        return f"Rule '{self.name}' is never referenced by another rule"


ValidationError = UndefinedSymbol | ConflictingName
ValidationWarning = UnusedToken | UnusedRule


@dataclasses.dataclass(frozen=True)
class Diagnostics:
    errors: tuple[ValidationError, ...] = ()
    warnings: tuple[ValidationWarning, ...] = ()

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0

    def format(self) -> str:
        lines = [f"error: {e}" for e in self.errors]
        lines.extend(f"warning: {w}" for w in self.warnings)
        return "\n".join(lines)


class MultipleValidationErrors(GrammarError):
    """Every error found by a single validation pass."""

    errors: list[ValidationError]
    warnings: list[ValidationWarning]

    def __init__(
        self,
        errors: typing.Iterable[ValidationError],
        warnings: typing.Iterable[ValidationWarning] = (),
    ):
        self.errors = list(errors)
        self.warnings = list(warnings)
        super().__init__(self.errors)

    def __str__(self):
        return f"{len(self.errors)} validation errors:\n\n" + "\n".join(
            f"- {error}" for error in self.errors
        )


def format_path(path: typing.Sequence[str]) -> str:
    if len(path) == 0:
        return "<root>"
    return path[0] + "".join(f" > {step}" for step in path[1:])
