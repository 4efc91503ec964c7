"""A small vocabulary for describing context-free grammars in Python.

Build rules with the functions in [rules], collect them in a [grammar.Grammar]
along with the tokens they use, validate it, and hand it to a generator.
Generators that want plain BNF can use [bnf.lower].
"""
from . import bnf
from . import errors
from . import grammar
from . import rules

from .bnf import *
from .errors import *
from .grammar import *
from .rules import *
