"""
Randomized membership test for fields of rational functions.

A field is given by generator groups: each group [f1, ..., fn] contributes the
generators fi / pivot, where the pivot is the member of smallest total degree.
Membership of a rational function num/den is reduced to ideal membership:

    1. Bound the degrees of every polynomial in the construction.
    2. Draw an integer point from a box wide enough that the point avoids the
       bad loci with the requested probability (Schwartz-Zippel).
    3. For every group and member f, add f * pivot(pt) - f(pt) * pivot, plus
       pivot * s - 1 with a fresh saturation variable s.
    4. num/den belongs to the field iff num * den(pt) - den * num(pt) reduces
       to zero modulo a Groebner basis of that ideal.
"""
import logging
import numpy as np
import sympy
from typing import Dict, List, Optional, Sequence

from structid.algebra.engines import get_engine
from structid.algebra.rings import RationalFunction, collect_symbols, total_degree
from structid.constants import DEFAULT_ENGINE, DEFAULT_PROBABILITY, MAX_RESAMPLES, SATURATION_PREFIX
from structid.context import RuntimeContext
from structid.exceptions import ConfigurationError, DegeneracyError

logger = logging.getLogger(__name__)

Group = List[sympy.Expr]


def validate_probability(p: float) -> float:
    if isinstance(p, bool) or not isinstance(p, (int, float)) or not 0 < p < 1:
        raise ConfigurationError(f"Probability of correctness must lie in (0, 1), got {p!r}.")
    return float(p)


def validate_groups(groups) -> List[Group]:
    """
    Checks that ``groups`` is a non-empty list of non-empty groups and
    returns them with every member converted to an expanded sympy expression.
    """
    if isinstance(groups, (str, sympy.Basic)) or not groups:
        raise ConfigurationError("At least one generator group is required.")
    validated = []
    for i, group in enumerate(groups):
        if isinstance(group, (str, sympy.Basic)) or not group:
            raise ConfigurationError(f"Generator group {i} is empty or not a list of polynomials.")
        members = [sympy.expand(sympy.sympify(f)) for f in group]
        if all(f == 0 for f in members):
            raise ConfigurationError(f"Generator group {i} has no non-zero member to use as pivot.")
        validated.append(members)
    return validated


def find_pivots(groups: Sequence[Group], gens: Sequence[sympy.Symbol]) -> List[sympy.Expr]:
    """The non-zero member of minimal total degree of each group."""
    pivots = []
    for group in groups:
        nonzero = [f for f in group if f != 0]
        pivots.append(min(nonzero, key=lambda f: total_degree(f, gens)))
    return pivots


def degree_bound(
    groups: Sequence[Group],
    pivots: Sequence[sympy.Expr],
    candidates: Sequence[RationalFunction],
    gens: Sequence[sympy.Symbol],
) -> int:
    """
    Upper bound D on the degrees of the polynomials built by the membership test.

    The degree of the common denominator is over-approximated by the sum of the
    degrees of all pivots and candidate denominators.

    Args:
        groups: Validated generator groups.
        pivots: Pivot of each group.
        candidates: Functions to be tested.
        gens: Ring variables.

    Returns:
        The degree bound D.
    """
    pivot_degrees = [total_degree(g, gens) for g in pivots]
    common = sum(pivot_degrees) + sum(total_degree(c.denominator, gens) for c in candidates)
    degree = common + 1
    for group, pivot_degree in zip(groups, pivot_degrees):
        degree = max(degree, common - pivot_degree + max(total_degree(f, gens) for f in group))
    for c in candidates:
        degree = max(
            degree,
            common - total_degree(c.denominator, gens) + total_degree(c.numerator, gens),
        )
    return degree


def sampling_bound(degree: int, n_vars: int, n_candidates: int, p: float) -> int:
    """Half-width ceil(3 * D^(k + 3) * m / (1 - p)) of the sampling box."""
    p = validate_probability(p)
    bound = sympy.Integer(3) * sympy.Integer(degree) ** (n_vars + 3) * n_candidates / sympy.Rational(1 - p)
    return int(sympy.ceiling(bound))


def uniform_integer(rng: np.random.Generator, bound: int) -> int:
    """Uniform integer in [-bound, bound], exact for bounds of any size."""
    width = 2 * bound + 1
    if width <= 2 ** 62:
        return int(rng.integers(-bound, bound + 1))
    n_bits = width.bit_length()
    n_bytes = (n_bits + 7) // 8
    excess = 8 * n_bytes - n_bits
    # Rejection sampling accepts more than half of the draws.
    while True:
        draw = int.from_bytes(rng.bytes(n_bytes), "little") >> excess
        if draw < width:
            return draw - bound


def sample_point(gens: Sequence[sympy.Symbol], bound: int, rng=None) -> Dict[sympy.Symbol, sympy.Integer]:
    """Independent uniform integers in [-bound, bound] for every variable."""
    rng = np.random.default_rng(rng)
    return {v: sympy.Integer(uniform_integer(rng, bound)) for v in gens}


def is_generic(point, pivots, candidates) -> bool:
    """Whether no pivot and no candidate denominator vanishes at ``point``."""
    for poly in list(pivots) + [c.denominator for c in candidates]:
        if poly.xreplace(point) == 0:
            return False
    return True


def saturation_ideal(
    groups: Sequence[Group],
    pivots: Sequence[sympy.Expr],
    point: Dict[sympy.Symbol, sympy.Expr],
    sat_vars: Sequence[sympy.Symbol],
) -> List[sympy.Expr]:
    """
    Generators of the ideal encoding membership in the field of ``groups``.

    ``point`` maps every variable either to a number (randomized test) or to a
    transcendental symbol (exact simplification).

    Returns:
        f * pivot(pt) - f(pt) * pivot for every non-pivot member f of every
        group, and pivot * s_i - 1 for every group i.
    """
    equations = []
    for group, pivot, sat in zip(groups, pivots, sat_vars):
        pivot_value = pivot.xreplace(point)
        for f in group:
            eq = sympy.expand(f * pivot_value - f.xreplace(point) * pivot)
            if eq != 0:
                equations.append(eq)
        equations.append(sympy.expand(pivot * sat - 1))
    return equations


def saturation_variables(n_groups: int) -> List[sympy.Dummy]:
    return [sympy.Dummy(f"{SATURATION_PREFIX}{i}") for i in range(n_groups)]


def check_field_membership(
    groups,
    candidates,
    p: float = DEFAULT_PROBABILITY,
    engine=DEFAULT_ENGINE,
    gens: Optional[Sequence[sympy.Symbol]] = None,
    rng=None,
    point: Optional[Dict] = None,
    context: Optional[RuntimeContext] = None,
) -> List[bool]:
    """
    Checks whether rational functions belong to the field generated by ``groups``.

    Args:
        groups: List of generator groups. A group [f1, ..., fn] contributes the
            generators fi / pivot, the pivot being its lowest-degree member.
        candidates: Rational functions (sympy expressions, RationalFunction or
            (numerator, denominator) pairs).
        p: Probability that the whole answer is correct, in (0, 1).
        engine: Groebner engine name or instance.
        gens: Ring variables. Defaults to every symbol of groups and candidates.
        rng: Seed or numpy Generator used to draw the evaluation point.
        point: Fixed evaluation point; skips sampling entirely.
        context: Receives the sampling bound and the size of the ideal.

    Returns:
        List of booleans, one per candidate.
    """
    engine = get_engine(engine)
    p = validate_probability(p)
    groups = validate_groups(groups)
    candidates = [RationalFunction.from_expr(c) for c in candidates]
    if gens is None:
        gens = collect_symbols([f for group in groups for f in group] + [c.as_expr() for c in candidates])
    gens = list(gens)
    for i, group in enumerate(groups):
        outside = set().union(*(f.free_symbols for f in group)) - set(gens)
        if outside:
            raise ConfigurationError(f"Generator group {i} involves variables {sorted(map(str, outside))} outside {gens}.")
    for c in candidates:
        if not c.free_symbols <= set(gens):
            raise ConfigurationError(f"Candidate {c} involves variables outside {gens}.")

    logger.debug("Finding pivot polynomials")
    pivots = find_pivots(groups, gens)
    logger.debug(f"\tDegrees are {[total_degree(g, gens) for g in pivots]}")
    if not candidates:
        return []

    if point is None:
        degree = degree_bound(groups, pivots, candidates, gens)
        total_vars = collect_symbols(f for group in groups for f in group)
        bound = sampling_bound(degree, len(total_vars), len(candidates), p)
        logger.debug(f"\tBound for the degrees is {degree}, {len(total_vars)} variables")
        logger.debug(f"\tSampling from {-bound} to {bound}")
        if context is not None:
            context.info["degree_bound"] = degree
            context.info["sampling_bound"] = bound
        rng = np.random.default_rng(rng)
        for _ in range(MAX_RESAMPLES):
            point = sample_point(gens, bound, rng)
            if is_generic(point, pivots, candidates):
                break
            logger.debug("\tPoint annihilates a pivot or a denominator, resampling")
        else:
            raise DegeneracyError(f"No generic point found after {MAX_RESAMPLES} draws.")
    else:
        missing = [v for v in gens if v not in point]
        if missing:
            raise ConfigurationError(f"Evaluation point has no value for {missing}.")
        values = {v: sympy.sympify(point[v]) for v in gens}
        non_integer = {v: value for v, value in values.items() if value.is_integer is not True}
        if non_integer:
            raise ConfigurationError(f"Evaluation point must be integral, got {non_integer}.")
        point = {v: sympy.Integer(value) for v, value in values.items()}
        if not is_generic(point, pivots, candidates):
            raise DegeneracyError(f"Point {point} annihilates a pivot or a candidate denominator.")
    logger.debug(f"\tPoint is {point}")

    logger.debug("Constructing the equations")
    sat_vars = saturation_variables(len(groups))
    equations = saturation_ideal(groups, pivots, point, sat_vars)

    logger.debug(f"Computing Groebner basis ({len(equations)} equations)")
    basis = engine.basis(equations, gens + sat_vars)
    if context is not None:
        context.info["ideal_size"] = len(equations)

    logger.debug("Producing the result")
    result = []
    for c in candidates:
        num_value = c.numerator.xreplace(point)
        den_value = c.denominator.xreplace(point)
        poly = sympy.expand(c.numerator * den_value - c.denominator * num_value)
        result.append(sympy.expand(engine.reduce(poly, basis)) == 0)
    return result
