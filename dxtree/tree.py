"""
Expression parsing and tree rendering.

DXTREE - Derivatives of eXpression TREEs

Expressions are written in function-call style:

    sin(add(z, 3))
    divide(multiply(x, x), 2)

Parsing happens in three steps:

    tokenize(text)       -> ["sin", "(", "add", "(", "z", "3", ")", ")"]
    build_arena(tokens)  -> ArenaTree: flat node list addressed by index
    materialize(arena)   -> Node: immutable tree with shared subtrees

The arena exists only because children are attached to a parent that has
already been created while the tokens stream past; once the pass is done
it is converted to Node objects and discarded.
"""

from typing import Iterator, List, Optional, Tuple

from .logger import dxtree_logger
from .symbols import Symbol, Vocabulary, classify

SEPARATORS = frozenset(",();")
OPEN_PAREN = "("
CLOSE_PAREN = ")"


class ExpressionError(ValueError):
    """Raised when an expression cannot be turned into a tree."""


class UnbalancedParenthesesError(ExpressionError):
    """Raised when a close paren has no opener, or an opener is never closed."""

    def __init__(self, detail: str = ""):
        message = "malformed expression: unbalanced parentheses"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class EmptyExpressionError(ExpressionError):
    """Raised when there is nothing to build a tree from."""

    def __init__(self):
        super().__init__("empty expression")


# ============================================================
# Tokenizer
# ============================================================

def tokenize(expression: str) -> List[str]:
    """
    Split an expression into tokens.

    Commas, semicolons and parentheses separate tokens. Parentheses are
    also emitted as tokens of their own; commas and semicolons are not.
    Whitespace-only spans are dropped.

    Examples:
        "add(x,3)"      -> ["add", "(", "x", "3", ")"]
        "sin( x )"      -> ["sin", "(", "x", ")"]
        "x; y"          -> ["x", "y"]
    """
    tokens = []
    start = 0

    for i, c in enumerate(expression):
        if c in SEPARATORS:
            piece = expression[start:i].strip()
            if piece:
                tokens.append(piece)
            if c == OPEN_PAREN or c == CLOSE_PAREN:
                tokens.append(c)
            start = i + 1

    piece = expression[start:].strip()
    if piece:
        tokens.append(piece)

    return tokens


# ============================================================
# Arena tree
# ============================================================

class ArenaNode:
    """A node of the flat construction tree: a symbol plus child indices."""

    __slots__ = ('symbol', 'children')

    def __init__(self, symbol: Symbol):
        self.symbol = symbol
        self.children: List[int] = []

    def add_child(self, index: int):
        self.children.append(index)

    def __repr__(self) -> str:
        return f"ArenaNode({self.symbol!r}, {self.children})"


class ArenaTree:
    """Flat list of ArenaNodes plus the index of the root."""

    __slots__ = ('nodes', 'root')

    def __init__(self, nodes: List[ArenaNode], root: int = 0):
        self.nodes = nodes
        self.root = root

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        return f"ArenaTree(root={self.root}, nodes={self.nodes})"


def build_arena(tokens: List[str], vocabulary: Optional[Vocabulary] = None) -> ArenaTree:
    """
    Build a flat tree from tokens in one left-to-right pass.

    Each non-paren token becomes a node. A node is attached to the
    innermost open parent. A node followed by "(" becomes the open parent
    itself until its ")" is consumed; values never open. A node created
    while no parent is open becomes the root.

    Raises:
        UnbalancedParenthesesError: On a ")" with no open parent, or on
            parents still open at the end of input.
    """
    nodes: List[ArenaNode] = []
    stack: List[int] = []
    root = 0

    for position, token in enumerate(tokens):
        if token == OPEN_PAREN:
            continue
        if token == CLOSE_PAREN:
            if not stack:
                raise UnbalancedParenthesesError(f"unexpected ')' at token {position}")
            stack.pop()
            continue

        symbol = classify(token, vocabulary)
        nodes.append(ArenaNode(symbol))
        index = len(nodes) - 1

        if stack:
            nodes[stack[-1]].add_child(index)
        else:
            root = index

        opens = position + 1 < len(tokens) and tokens[position + 1] == OPEN_PAREN
        if opens and not symbol.is_value:
            stack.append(index)

    if stack:
        unclosed = ", ".join(nodes[i].symbol.name for i in stack)
        raise UnbalancedParenthesesError(f"unclosed: {unclosed}")

    return ArenaTree(nodes, root)


# ============================================================
# Shared tree
# ============================================================

class Node:
    """
    Immutable expression tree node.

    Children are held by reference. A subtree may be the child of several
    parents, so derivative trees can reuse an unchanged operand instead of
    copying it.

    Examples:
        x = Node(Symbol.variable("x"))
        Node(SIN, (x,))                 # SIN(x)
        Node(MULTIPLY, (x, x))          # both children are the same object
    """

    __slots__ = ('_symbol', '_children')

    def __init__(self, symbol: Symbol, children: Tuple['Node', ...] = ()):
        object.__setattr__(self, '_symbol', symbol)
        object.__setattr__(self, '_children', tuple(children))

    def __setattr__(self, name, value):
        raise AttributeError(f"Node is immutable (cannot set '{name}')")

    def __delattr__(self, name):
        raise AttributeError(f"Node is immutable (cannot delete '{name}')")

    @property
    def symbol(self) -> Symbol:
        return self._symbol

    @property
    def children(self) -> Tuple['Node', ...]:
        return self._children

    @property
    def is_leaf(self) -> bool:
        return not self._children

    def walk(self) -> Iterator['Node']:
        """Yield this node and all descendants, pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node._children))

    def size(self) -> int:
        """Number of nodes in the tree (shared subtrees counted per use)."""
        return sum(1 for _ in self.walk())

    def depth(self) -> int:
        """Height of the tree; a single node has depth 1."""
        deepest = 0
        stack = [(self, 1)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            stack.extend((child, level + 1) for child in node._children)
        return deepest

    def __eq__(self, other):
        if isinstance(other, Node):
            if self is other:
                return True
            return self._symbol == other._symbol and self._children == other._children
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self._symbol, self._children))

    def __repr__(self) -> str:
        return f"Node({format_tree(self)})"

    def __str__(self) -> str:
        return format_tree(self)


def materialize(arena: ArenaTree) -> Node:
    """
    Convert a flat arena into a Node tree rooted at the arena's root.

    Nodes are built from the end of the arena backwards: a child is always
    appended after its parent, so its Node exists by the time the parent
    needs it.

    Raises:
        EmptyExpressionError: If the arena has no nodes.
    """
    if not arena.nodes:
        raise EmptyExpressionError()

    built: List[Optional[Node]] = [None] * len(arena.nodes)
    for index in range(len(arena.nodes) - 1, -1, -1):
        flat = arena.nodes[index]
        built[index] = Node(flat.symbol, tuple(built[child] for child in flat.children))

    return built[arena.root]


def parse(expression: str, vocabulary: Optional[Vocabulary] = None) -> Node:
    """
    Parse an expression string into a Node tree.

    Examples:
        parse("sin(x)")         -> SIN(x)
        parse("add(x, 3)")      -> ADD(x, 3)

    Raises:
        UnbalancedParenthesesError: Parentheses do not pair up.
        EmptyExpressionError: The expression has no tokens.
    """
    tokens = tokenize(expression)
    arena = build_arena(tokens, vocabulary)
    tree = materialize(arena)
    dxtree_logger.debug("parsed %r: %d tokens, %d nodes", expression, len(tokens), len(arena))
    return tree


# ============================================================
# Printer
# ============================================================

def format_tree(node: Node) -> str:
    """
    Render a tree as text.

    Values print as their literal text; everything else prints as
    NAME(child, child, ...).

    Examples:
        SIN(x)                        -> "SIN(x)"
        ADD(MULTIPLY(1, x), 2)        -> "ADD(MULTIPLY(1, x), 2)"
    """
    parts = []
    # Nodes still to render, and literal text in between, popped from the end
    pending = [node]
    while pending:
        item = pending.pop()
        if isinstance(item, str):
            parts.append(item)
            continue
        symbol = item.symbol
        if symbol.is_value:
            parts.append(symbol.text)
            continue
        parts.append(f"{symbol.name}(")
        pending.append(")")
        for i in range(len(item.children) - 1, -1, -1):
            pending.append(item.children[i])
            if i:
                pending.append(", ")
    return "".join(parts)
