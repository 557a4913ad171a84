import sympy
from typing import Protocol, Sequence, Union, runtime_checkable

from structid.exceptions import ConfigurationError

# Engine names understood by get_engine and the sympy method they select.
ENGINE_METHODS = {
    "groebner": "f5b",
    "f5b": "f5b",
    "singular": "buchberger",
    "buchberger": "buchberger",
}


@runtime_checkable
class GroebnerEngine(Protocol):
    """
    Backend computing Groebner bases and normal forms.

    The choice of engine only affects performance: every engine must be exact
    and must agree on whether a polynomial reduces to zero.
    """

    def basis(self, polys: Sequence[sympy.Expr], gens: Sequence[sympy.Symbol], domain=None):
        ...

    def reduce(self, poly: sympy.Expr, basis) -> sympy.Expr:
        ...


class SympyEngine:
    """
    Groebner engine backed by ``sympy.groebner``.

    Args:
        method: "buchberger" (general purpose) or "f5b" (usually faster).
        order: Monomial order, degree reverse lexicographic by default.
    """

    def __init__(self, method: str = "f5b", order: str = "grevlex"):
        if method not in ("buchberger", "f5b"):
            raise ConfigurationError(f"Unknown sympy Groebner method '{method}'.")
        self.method = method
        self.order = order

    def basis(self, polys, gens, domain=None):
        polys = [p for p in polys if sympy.expand(p) != 0]
        options = {"order": self.order, "method": self.method}
        if domain is not None:
            options["domain"] = domain
        return sympy.groebner(polys, *gens, **options)

    def reduce(self, poly, basis):
        _, remainder = basis.reduce(poly)
        return remainder

    def __repr__(self):
        return f"SympyEngine(method={self.method!r}, order={self.order!r})"


def get_engine(engine: Union[str, GroebnerEngine]) -> GroebnerEngine:
    """
    Resolves an engine name to an engine instance.

    Args:
        engine: An object implementing GroebnerEngine, or one of
            "groebner", "f5b", "singular", "buchberger".

    Returns:
        The engine to use.
    """
    if isinstance(engine, str):
        method = ENGINE_METHODS.get(engine.lower())
        if method is None:
            raise ConfigurationError(
                f"Unknown Groebner engine '{engine}'. Available: {sorted(ENGINE_METHODS)}"
            )
        return SympyEngine(method=method)
    if isinstance(engine, GroebnerEngine):
        return engine
    raise ConfigurationError(f"Expected an engine name or a GroebnerEngine, got {type(engine).__name__}.")
