import logging
import sympy
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from structid.algebra.engines import get_engine
from structid.algebra.membership import (
    find_pivots,
    saturation_ideal,
    saturation_variables,
    validate_groups,
)
from structid.algebra.rings import RationalFunction, RingContext, collect_symbols, total_degree
from structid.constants import DEFAULT_ENGINE
from structid.exceptions import UnrepresentableQuantity

logger = logging.getLogger(__name__)


@dataclass
class GeneratorBuckets:
    """
    Generator groups split by whether they involve non-parameter variables.

    Args:
        with_states: Groups involving states or inputs.
        no_states: Groups in the parameters only.
        ring: Ring shared by every group and every later candidate.
    """
    with_states: List[List[sympy.Expr]] = field(default_factory=list)
    no_states: List[List[sympy.Expr]] = field(default_factory=list)
    ring: Optional[RingContext] = None

    def merged(self) -> List[List[sympy.Expr]]:
        return self.no_states + self.with_states


def extract_coefficients(poly, variables: Sequence[sympy.Symbol]) -> Dict[Tuple[int, ...], sympy.Expr]:
    """
    Coefficients of ``poly`` seen as a polynomial in ``variables``.

    Returns:
        Dict mapping exponent tuples of ``variables`` to coefficients, which are
        polynomials in the remaining symbols.
    """
    poly = sympy.expand(sympy.sympify(poly))
    if not variables:
        return {(): poly}
    return {monom: sympy.expand(coeff) for monom, coeff in sympy.Poly(poly, *variables).terms()}


def io_coefficient_groups(io_equations, parameters) -> List[List[sympy.Expr]]:
    """One group per input-output equation: its coefficients over the parameter ring."""
    parameters = set(parameters)
    groups = []
    for eq in io_equations:
        eq = sympy.sympify(eq)
        nonparameters = sorted(eq.free_symbols - parameters, key=str)
        groups.append(list(extract_coefficients(eq, nonparameters).values()))
    for group in groups:
        logger.debug(f"\tCoefficient degrees {sorted(total_degree(c, list(parameters)) for c in group)}")
    return groups


def extract_generators(
    io_equations,
    parameters,
    known=(),
    model=None,
) -> GeneratorBuckets:
    """
    Builds the generators of the field of identifiable functions.

    Args:
        io_equations: Input-output equations, polynomials in output jets, input
            jets and parameters.
        parameters: Parameter symbols.
        known: Quantities assumed to be known (functions of parameters, or of
            parameters and states when ``model`` is given).
        model: When given, state-derived generators from
            ``model.state_generators()`` are added and the ring is extended by
            the variables they involve.

    Returns:
        GeneratorBuckets with the parameter-only and state-involving groups.
    """
    logger.debug("Extracting coefficients")
    no_states = io_coefficient_groups(io_equations, parameters)
    with_states = []
    extra = ()
    if model is not None:
        logger.debug("Computing state-derived generators")
        with_states = [[sympy.expand(f) for f in group] for group in model.state_generators()]
        extra = tuple(getattr(model, "states", ())) + tuple(collect_symbols(f for group in with_states for f in group))
    ring = RingContext.from_parameters(parameters, extra)

    for quantity in known:
        quantity = sympy.sympify(quantity)
        if not ring.contains(quantity):
            message = (
                f"Known quantity {quantity} cannot be expressed in the ring "
                f"{list(ring.gens)}, dropping it"
            )
            logger.warning(f"{UnrepresentableQuantity.__name__}: {message}")
            warnings.warn(message, UnrepresentableQuantity)
            continue
        group = RationalFunction.from_expr(quantity).as_group()
        if ring.involves_nonparameters(quantity):
            with_states.append(group)
        else:
            no_states.append(group)
    return GeneratorBuckets(with_states=with_states, no_states=no_states, ring=ring)


def simplify_field_generators(groups, engine=DEFAULT_ENGINE) -> List[sympy.Expr]:
    """
    Simplifies generators of a subfield of rational functions.

    The saturation ideal of the membership test is built over the field of
    rational functions in transcendental copies of the variables instead of at
    a random point. The coefficients of its reduced Groebner basis, divided by
    the leading ones, generate the same field. No randomness is involved.

    Args:
        groups: Generator groups; [f1, ..., fn] defines fi / f1-like ratios
            relative to the group's pivot.
        engine: Groebner engine name or instance.

    Returns:
        Non-constant rational functions generating the same field.
    """
    engine = get_engine(engine)
    groups = validate_groups(groups)
    total_vars = collect_symbols(f for group in groups for f in group)
    if not total_vars:
        return []
    pivots = find_pivots(groups, total_vars)
    logger.debug(f"\tDegrees are {[total_degree(g, total_vars) for g in pivots]}")

    transcendentals = [sympy.Dummy(str(v)) for v in total_vars]
    to_coefficients = dict(zip(total_vars, transcendentals))
    to_variables = dict(zip(transcendentals, total_vars))
    domain = sympy.QQ.frac_field(*transcendentals)

    logger.debug("Constructing the equations")
    sat_vars = saturation_variables(len(groups))
    equations = saturation_ideal(groups, pivots, to_coefficients, sat_vars)

    logger.debug(f"Computing Groebner basis ({len(equations)} equations)")
    basis = engine.basis(equations, total_vars + sat_vars, domain=domain)

    result = []
    for poly in basis.polys:
        coeffs = poly.coeffs(order="grevlex")
        lead = coeffs[0]
        for c in coeffs[1:]:
            ratio = sympy.cancel(c / lead).xreplace(to_variables)
            if ratio.is_number:
                continue
            if any(sympy.cancel(ratio - r) == 0 or sympy.cancel(ratio + r) == 0 for r in result):
                continue
            result.append(ratio)
    logger.debug(f"Simplified {sum(len(g) for g in groups)} generators to {len(result)}")
    return result
