"""
Symbols and the symbol classifier.

DXTREE - Derivatives of eXpression TREEs

Every tree node carries a Symbol: an operator or function tag with no
payload (ADD, SIN, ...) or a value tag carrying the literal text as it
was written (CONSTANT("3.5"), VARIABLE("x")).

Tokens are classified against a Vocabulary, the read-only bundle of
constant, variable and function names. The built-in vocabulary is
created once, on first use, and shared process-wide.
"""

from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional


class SymbolKind(Enum):
    """Tag of a Symbol."""

    NULLSYMBOL = "NULLSYMBOL"
    ADD = "ADD"
    SUBTRACT = "SUBTRACT"
    NEGATE = "NEGATE"
    MULTIPLY = "MULTIPLY"
    DIVIDE = "DIVIDE"
    SIN = "SIN"
    COS = "COS"
    CONSTANT = "CONSTANT"
    VARIABLE = "VARIABLE"
    # Reserved for future rule kinds
    DERIVATIVE = "DERIVATIVE"
    NUMERICAL_DERIVATIVE = "NUMERICAL_DERIVATIVE"
    UNKNOWN = "UNKNOWN"


VALUE_KINDS: FrozenSet[SymbolKind] = frozenset({SymbolKind.CONSTANT, SymbolKind.VARIABLE})

# Expected number of children per kind. Kinds missing here have no fixed arity.
ARITY: Mapping[SymbolKind, int] = MappingProxyType({
    SymbolKind.ADD: 2,
    SymbolKind.SUBTRACT: 2,
    SymbolKind.MULTIPLY: 2,
    SymbolKind.DIVIDE: 2,
    SymbolKind.SIN: 1,
    SymbolKind.COS: 1,
    SymbolKind.NEGATE: 1,
    SymbolKind.CONSTANT: 0,
    SymbolKind.VARIABLE: 0,
})


# ============================================================
# Symbol
# ============================================================

class Symbol:
    """
    An immutable tagged value: a SymbolKind plus, for CONSTANT and
    VARIABLE only, the literal text of the token.

    Examples:
        Symbol.constant("3.5")   # CONSTANT('3.5')
        Symbol.variable("x")     # VARIABLE('x')
        ADD                      # ADD
        Symbol.constant("2") == Symbol.constant("2")  # True
    """

    __slots__ = ('_kind', '_text')

    def __init__(self, kind: SymbolKind, text: Optional[str] = None):
        if kind in VALUE_KINDS and text is None:
            raise ValueError(f"{kind.value} symbol requires text")
        if kind not in VALUE_KINDS and text is not None:
            raise ValueError(f"{kind.value} symbol takes no text")
        self._kind = kind
        self._text = text

    @classmethod
    def constant(cls, text: str) -> 'Symbol':
        """Create a CONSTANT symbol holding the literal as written."""
        return cls(SymbolKind.CONSTANT, text)

    @classmethod
    def variable(cls, text: str) -> 'Symbol':
        """Create a VARIABLE symbol holding the name as written."""
        return cls(SymbolKind.VARIABLE, text)

    @property
    def kind(self) -> SymbolKind:
        return self._kind

    @property
    def text(self) -> Optional[str]:
        """Payload text, None for operator symbols."""
        return self._text

    @property
    def name(self) -> str:
        """Tag name used when printing, e.g. "MULTIPLY"."""
        return self._kind.value

    @property
    def is_value(self) -> bool:
        return self._kind in VALUE_KINDS

    def __eq__(self, other):
        if isinstance(other, Symbol):
            return self._kind is other._kind and self._text == other._text
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self._kind, self._text))

    def __repr__(self) -> str:
        if self._text is None:
            return self._kind.value
        return f"{self._kind.value}({self._text!r})"


# Payload-less symbols are shared singletons
NULLSYMBOL = Symbol(SymbolKind.NULLSYMBOL)
ADD = Symbol(SymbolKind.ADD)
SUBTRACT = Symbol(SymbolKind.SUBTRACT)
NEGATE = Symbol(SymbolKind.NEGATE)
MULTIPLY = Symbol(SymbolKind.MULTIPLY)
DIVIDE = Symbol(SymbolKind.DIVIDE)
SIN = Symbol(SymbolKind.SIN)
COS = Symbol(SymbolKind.COS)
DERIVATIVE = Symbol(SymbolKind.DERIVATIVE)
NUMERICAL_DERIVATIVE = Symbol(SymbolKind.NUMERICAL_DERIVATIVE)
UNKNOWN = Symbol(SymbolKind.UNKNOWN)


def is_value(symbol: Symbol) -> bool:
    """Check if a symbol is a leaf value (CONSTANT or VARIABLE)."""
    return symbol.is_value


def is_numeral(token: str) -> bool:
    """
    Check if a token reads as a floating-point numeral.

    Accepts what float() accepts ("3", "-2.5", "1e3", "inf"), except
    digit separators such as "1_000".
    """
    if "_" in token:
        return False
    try:
        float(token)
    except ValueError:
        return False
    return True


# ============================================================
# Vocabulary
# ============================================================

DEFAULT_CONSTANTS: FrozenSet[str] = frozenset({"e", "pi"})
DEFAULT_VARIABLES: FrozenSet[str] = frozenset({"x", "y", "z"})


@lru_cache(maxsize=None)
def function_table() -> Mapping[str, Symbol]:
    """
    Return the built-in function/operator name table.

    Built on first call and cached; the returned mapping is read-only.
    """
    table: Dict[str, Symbol] = {
        "add": ADD,
        "subtract": SUBTRACT,
        "negate": NEGATE,
        "multiply": MULTIPLY,
        "divide": DIVIDE,
        "sin": SIN,
        "cos": COS,
    }
    return MappingProxyType(table)


class Vocabulary:
    """
    Read-only set of names a tokenizer can recognize.

    Args:
        constants: Named constants (classified as CONSTANT)
        variables: Variable names (classified as VARIABLE)
        functions: Function name -> operator Symbol

    Example:
        vocab = Vocabulary({"e"}, {"t"}, {"sin": SIN})
        vocab.classify("t")    # VARIABLE('t')
        vocab.classify("x")    # UNKNOWN
    """

    __slots__ = ('_constants', '_variables', '_functions')

    def __init__(self, constants: Iterable[str], variables: Iterable[str],
                 functions: Mapping[str, Symbol]):
        for name, symbol in functions.items():
            if symbol.is_value:
                raise ValueError(f"function '{name}' cannot map to value symbol {symbol!r}")
        self._constants = frozenset(constants)
        self._variables = frozenset(variables)
        self._functions = MappingProxyType(dict(functions))

    @property
    def constants(self) -> FrozenSet[str]:
        return self._constants

    @property
    def variables(self) -> FrozenSet[str]:
        return self._variables

    @property
    def functions(self) -> Mapping[str, Symbol]:
        return self._functions

    def classify(self, token: str) -> Symbol:
        """
        Map one token to a Symbol.

        Resolution order (first match wins):
            1. numeral or named constant -> CONSTANT(token)
            2. variable name             -> VARIABLE(token)
            3. function table            -> operator symbol
            4. otherwise                 -> UNKNOWN
        """
        if is_numeral(token) or token in self._constants:
            return Symbol.constant(token)
        if token in self._variables:
            return Symbol.variable(token)
        return self._functions.get(token, UNKNOWN)

    def names(self) -> List[str]:
        """All recognized names, sorted."""
        return sorted(self._constants | self._variables | set(self._functions))

    def __repr__(self) -> str:
        return (f"Vocabulary(constants={sorted(self._constants)}, "
                f"variables={sorted(self._variables)}, "
                f"functions={sorted(self._functions)})")


@lru_cache(maxsize=None)
def default_vocabulary() -> Vocabulary:
    """Return the built-in vocabulary, created once on first use."""
    return Vocabulary(DEFAULT_CONSTANTS, DEFAULT_VARIABLES, function_table())


def classify(token: str, vocabulary: Optional[Vocabulary] = None) -> Symbol:
    """
    Classify a token using the given vocabulary (built-in by default).

    Examples:
        classify("3.5")  -> CONSTANT('3.5')
        classify("e")    -> CONSTANT('e')
        classify("x")    -> VARIABLE('x')
        classify("sin")  -> SIN
        classify("foo")  -> UNKNOWN
    """
    if vocabulary is None:
        vocabulary = default_vocabulary()
    return vocabulary.classify(token)
