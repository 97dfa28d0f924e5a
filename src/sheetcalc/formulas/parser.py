"""Lark-based parser for spreadsheet cell formulas.

Supports:
- Cell references: ``F2``, ``aa10``, ``$B$3`` (any number of column letters)
- Range references: ``A1:C10`` (corners in any order)
- Number, string (``"a ""quoted"" word"``) and boolean literals
- Arithmetic, comparisons, ``&`` concatenation, postfix percent (%)
- Function calls with any number of arguments, including none
"""

from __future__ import annotations

from lark import Lark, Tree, Visitor

from sheetcalc.formulas.errors import FormulaError, FormulaParseError
from sheetcalc.formulas.refs import expand_range, normalize_cell_id, parse_range_id

# LALR(1) grammar for spreadsheet formulas.
# Operator precedence (lowest to highest):
#   1. Comparison: > < >= <= = <>
#   2. Concatenation: &
#   3. Addition/subtraction: + -
#   4. Multiplication/division: * /
#   5. Unary plus/minus: + -
#   6. Exponentiation: ^ (right-associative)
#   7. Postfix percent: %  (3% = 0.03)
#   8. Atoms: number, bool, string, function call, reference, parenthesized expr
GRAMMAR = r"""
start: "=" expr

?expr: comparison

?comparison: concat
    | comparison ">" concat   -> gt
    | comparison "<" concat   -> lt
    | comparison ">=" concat  -> gte
    | comparison "<=" concat  -> lte
    | comparison "=" concat   -> eq
    | comparison "<>" concat  -> neq

?concat: addition
    | concat "&" addition  -> concat

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div

?unary: exponentiation
    | "-" unary  -> neg
    | "+" unary  -> pos

?exponentiation: postfix
    | postfix "^" unary  -> pow

?postfix: atom
    | postfix "%"  -> percent

?atom: NUMBER                   -> number
    | BOOL                      -> boolean
    | STRING                    -> string
    | FUNC_NAME "(" args ")"    -> func_call
    | RANGE_REF                 -> range_ref
    | CELL_REF                  -> cell_ref
    | "(" expr ")"

args: expr ("," expr)*
    |

// A1:B2 as one token; either corner may carry $ markers
RANGE_REF.4: /\$?[A-Za-z]+\$?[0-9]+:\$?[A-Za-z]+\$?[0-9]+/

BOOL.3: /(TRUE|FALSE)(?![A-Za-z0-9_.(])/i

// Not followed by identifier characters, so LOG10( and DEC2BIN( stay names
CELL_REF.2: /\$?[A-Za-z]+\$?[0-9]+(?![A-Za-z0-9_.(])/

FUNC_NAME.1: /[A-Za-z_][A-Za-z0-9_.]*/

STRING: /"(?:[^"]|"")*"/

%import common.NUMBER
%import common.WS
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")


def parse_formula(text: str) -> Tree:
    """Parse a formula string (must start with ``=``) into a Lark Tree.

    Args:
        text: The formula text, e.g. ``"=SUM(A1:A3) * (1 - B1)"``.

    Returns:
        A Lark parse tree.

    Raises:
        FormulaParseError: If the formula has invalid syntax.
    """
    text = text.strip()
    if not text.startswith("="):
        raise FormulaParseError("Formula must start with '='", position=0)
    try:
        return _parser.parse(text)
    except Exception as exc:
        # Extract position info from Lark exception if available
        pos = getattr(exc, "column", None)
        raise FormulaParseError(str(exc), position=pos) from exc


def unquote_string(token: str) -> str:
    """Strip the surrounding quotes of a STRING token and undo ``""`` escapes."""
    return token[1:-1].replace('""', '"')


class _RefCollector(Visitor):
    """Visitor that collects all cell references from a parse tree."""

    def __init__(self) -> None:
        self.cell_refs: set[str] = set()

    def cell_ref(self, tree: Tree) -> None:
        token = tree.children[0]
        self.cell_refs.add(normalize_cell_id(str(token)))

    def range_ref(self, tree: Tree) -> None:
        token = tree.children[0]
        start, end = parse_range_id(str(token))
        self.cell_refs.update(expand_range(start, end))


def extract_refs(tree: Tree) -> set[str]:
    """Extract every cell id a parsed formula reads, ranges expanded.

    Args:
        tree: A parse tree from ``parse_formula()``.

    Returns:
        Set of canonical cell ids (uppercase, no ``$``).
    """
    collector = _RefCollector()
    try:
        collector.visit(tree)
    except FormulaError:
        # A malformed reference evaluates to #ERROR later; it has no precedents
        return collector.cell_refs
    return collector.cell_refs
