import sympy
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Set, Tuple

from structid.exceptions import ConfigurationError


@dataclass(frozen=True)
class RationalFunction:
    """
    A rational function kept as a (numerator, denominator) pair of polynomials.

    Use ``RationalFunction.from_expr`` to build one from any sympy expression,
    a number, a string, or a ``(numerator, denominator)`` tuple.
    """
    numerator: sympy.Expr
    denominator: sympy.Expr = sympy.Integer(1)

    @classmethod
    def from_expr(cls, expr) -> "RationalFunction":
        if isinstance(expr, RationalFunction):
            return expr
        if isinstance(expr, tuple):
            if len(expr) != 2:
                raise ConfigurationError(f"Expected a (numerator, denominator) pair, got {expr}.")
            num, den = (sympy.sympify(e) for e in expr)
        else:
            expr = sympy.sympify(expr)
            num, den = sympy.fraction(sympy.cancel(sympy.together(expr)))
        num, den = sympy.expand(num), sympy.expand(den)
        if den == 0:
            raise ConfigurationError(f"Rational function {num}/{den} has a zero denominator.")
        return cls(num, den)

    @property
    def free_symbols(self) -> Set[sympy.Symbol]:
        return self.numerator.free_symbols | self.denominator.free_symbols

    def as_expr(self) -> sympy.Expr:
        return self.numerator / self.denominator

    def as_group(self) -> List[sympy.Expr]:
        """Generator group [denominator, numerator] whose only ratio is this function."""
        return [self.denominator, self.numerator]

    def __str__(self):
        return str(self.as_expr())


def total_degree(poly, gens: Sequence[sympy.Symbol]) -> int:
    """Total degree of ``poly`` in ``gens``; constants (zero included) have degree 0."""
    poly = sympy.sympify(poly)
    if not poly.free_symbols & set(gens):
        return 0
    return sympy.Poly(poly, *gens).total_degree()


def collect_symbols(exprs: Iterable) -> List[sympy.Symbol]:
    """Free symbols of ``exprs``, sorted by name for a reproducible ring."""
    found = set()
    for expr in exprs:
        found |= sympy.sympify(expr).free_symbols
    return sorted(found, key=str)


@dataclass
class RingContext:
    """
    The polynomial ring every generator and candidate is cast into.

    Args:
        parameters: Model parameters, in model order.
        gens: All ring variables, parameters first.
    """
    parameters: Tuple[sympy.Symbol, ...]
    gens: Tuple[sympy.Symbol, ...]

    @classmethod
    def from_parameters(cls, parameters, extra=()) -> "RingContext":
        parameters = tuple(sympy.sympify(p) for p in parameters)
        extra = tuple(dict.fromkeys(v for v in extra if v not in parameters))
        return cls(parameters, parameters + extra)

    @property
    def nonparameters(self) -> Tuple[sympy.Symbol, ...]:
        return tuple(v for v in self.gens if v not in self.parameters)

    def contains(self, expr) -> bool:
        """Whether ``expr`` is a rational function of the ring variables."""
        expr = sympy.sympify(expr)
        if not expr.free_symbols <= set(self.gens):
            return False
        return expr.is_rational_function(*self.gens) if self.gens else expr.is_number

    def involves_nonparameters(self, expr) -> bool:
        return bool(sympy.sympify(expr).free_symbols - set(self.parameters))

    def cast(self, expr) -> RationalFunction:
        func = RationalFunction.from_expr(expr)
        if not self.contains(func.as_expr()):
            raise ConfigurationError(
                f"Function {func} is not a rational function of the ring variables {list(self.gens)}."
            )
        return func
