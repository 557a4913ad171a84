"""
Global identifiability of parameters and of rational functions of parameters.

The pipeline is strictly linear:

    IO-equations -> Wronskian ranks -> generators -> (simplify) -> membership

A function is globally identifiable iff it lies in the field generated by the
coefficients of the input-output equations, tested with the randomized
membership oracle of ``structid.algebra.membership``.
"""
import logging
import numpy as np
import sympy
from typing import Dict, List, Optional, Sequence, Union

from structid.algebra.engines import get_engine
from structid.algebra.generators import extract_generators, simplify_field_generators
from structid.algebra.membership import check_field_membership, validate_probability
from structid.algebra.rings import RationalFunction
from structid.constants import DEFAULT_ENGINE, DEFAULT_PROBABILITY, VAR_CHANGE_POLICIES
from structid.context import RuntimeContext
from structid.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def check_identifiability(
    io_equations,
    parameters,
    funcs=None,
    p: float = DEFAULT_PROBABILITY,
    engine=DEFAULT_ENGINE,
    known=(),
    rng=None,
    context: Optional[RuntimeContext] = None,
) -> List[bool]:
    """
    Checks identifiability of functions of parameters from input-output equations.

    Args:
        io_equations: One polynomial or a list of polynomials in output jets,
            input jets and parameters.
        parameters: Parameter symbols.
        funcs: Rational functions of the parameters. Defaults to the parameters.
        p: Probability of correctness of the whole answer.
        engine: Groebner engine name or instance.
        known: Functions of the parameters assumed to be known.
        rng: Seed or numpy Generator for the evaluation point.
        context: Optional diagnostics receiver.

    Returns:
        One boolean per function.
    """
    if isinstance(io_equations, (str, sympy.Basic)):
        io_equations = [io_equations]
    if not io_equations:
        raise ConfigurationError("At least one input-output equation is required.")
    parameters = [sympy.sympify(v) for v in parameters]
    funcs = list(parameters) if funcs is None else list(funcs)

    buckets = extract_generators(io_equations, parameters, known=known)
    candidates = [buckets.ring.cast(f) for f in funcs]
    return check_field_membership(
        buckets.no_states, candidates, p, engine, gens=buckets.ring.gens, rng=rng, context=context
    )


def extract_identifiable_functions(io_equations, parameters, engine=DEFAULT_ENGINE) -> List[sympy.Expr]:
    """
    Simplified generators of the field of identifiable functions.

    Exact: no probability is involved.
    """
    if isinstance(io_equations, (str, sympy.Basic)):
        io_equations = [io_equations]
    buckets = extract_generators(io_equations, [sympy.sympify(v) for v in parameters])
    return simplify_field_generators(buckets.no_states, engine=engine)


def _check_wronskians(ode, io_equations, rng, context: RuntimeContext):
    logger.info("Computing Wronskians")
    with context.timer("wrnsk_time"):
        wronskians = ode.wronskians(io_equations, rng=rng)
    logger.info(f"Computed in {context.timings['wrnsk_time']:.3f} seconds")

    dims = [w.shape[1] for w in wronskians]
    logger.debug(f"Dimensions of the wronskians {dims}")
    with context.timer("rank_time"):
        ranks = [ode.matrix_rank(w) for w in wronskians]
    logger.debug(f"Ranks of the wronskians {ranks}")
    logger.info(f"Ranks of the Wronskians computed in {context.timings['rank_time']:.3f} seconds")
    context.info["wronskian_dims"] = dims
    context.info["wronskian_ranks"] = ranks

    if any(dim - rank > 1 for dim, rank in zip(dims, ranks)):
        logger.warning(
            "One of the Wronskians has corank greater than one, so the results of the "
            "algorithm will be valid only for multiexperiment identifiability. To assess "
            "single-experiment identifiability, use a method based on differential algebra "
            "over a single trajectory such as SIAN."
        )


def _report_submodels(ode):
    find_submodels = getattr(ode, "find_submodels", None)
    if find_submodels is None:
        return
    submodels = find_submodels()
    if submodels:
        logger.warning(
            f"The model has {len(submodels)} nontrivial submodels "
            f"{[list(map(str, s)) for s in submodels]}; they can be analyzed separately."
        )


def check_identifiability_ode(
    ode,
    funcs=None,
    known=(),
    p: float = DEFAULT_PROBABILITY,
    var_change: str = "default",
    engine=DEFAULT_ENGINE,
    rng=None,
    context: Optional[RuntimeContext] = None,
) -> List[bool]:
    """
    Checks global identifiability of rational functions for an ODE model.

    Args:
        ode: Model exposing ``parameters``, ``find_ioequations``, ``wronskians``,
            ``matrix_rank`` and ``state_generators``.
        funcs: Rational functions of parameters (and possibly states).
            Defaults to the parameters.
        known: Quantities assumed to be known.
        p: Probability of correctness of the whole answer.
        var_change: Variable change policy for the IO-equations; runtime only.
        engine: Groebner engine name or instance.
        rng: Seed or numpy Generator; drives every random choice of the run.
        context: Receives per-stage timings.

    Returns:
        One boolean per function.
    """
    # Fail before any computation on invalid settings.
    p = validate_probability(p)
    engine = get_engine(engine)
    if var_change not in VAR_CHANGE_POLICIES:
        raise ConfigurationError(
            f"Unknown variable change policy '{var_change}'. Available: {list(VAR_CHANGE_POLICIES)}"
        )
    context = context if context is not None else RuntimeContext()
    rng = np.random.default_rng(rng)

    parameters = list(ode.parameters)
    funcs = list(parameters) if funcs is None else list(funcs)
    candidates = [RationalFunction.from_expr(f) for f in funcs]
    known = [sympy.sympify(q) for q in known]
    parameter_set = set(parameters)
    with_states = any(c.free_symbols - parameter_set for c in candidates) or any(
        q.free_symbols - parameter_set for q in known
    )

    logger.info("Computing IO-equations")
    with context.timer("ioeq_time"):
        io_equations = ode.find_ioequations(var_change=var_change)
    logger.debug(f"Sizes: {[len(sympy.Add.make_args(eq)) for eq in io_equations]}")
    logger.info(f"Computed in {context.timings['ioeq_time']:.3f} seconds")

    _check_wronskians(ode, io_equations, rng, context)
    _report_submodels(ode)

    logger.info("Assessing global identifiability using the coefficients of the io-equations")
    buckets = extract_generators(io_equations, parameters, known=known, model=ode if with_states else None)
    if with_states:
        logger.info("Simplifying generators")
        with context.timer("simplify_time"):
            simplified = simplify_field_generators(buckets.no_states, engine=engine)
        logger.info(f"Simplified in {context.timings['simplify_time']:.3f} seconds")
        groups = [RationalFunction.from_expr(f).as_group() for f in simplified] + buckets.with_states
    else:
        groups = buckets.no_states
    if not groups:
        # Only constants: the field is QQ itself.
        groups = [[sympy.Integer(1)]]

    candidates = [buckets.ring.cast(c) for c in candidates]
    # The Wronskian ranks are randomized too; both stages share the 1 - p budget.
    half_p = 0.5 + p / 2
    with context.timer("check_time"):
        result = check_field_membership(
            groups, candidates, half_p, engine, gens=buckets.ring.gens, rng=rng, context=context
        )
    logger.info(f"Computed in {context.timings['check_time']:.3f} seconds")
    return result


def assess_global_identifiability(
    ode,
    funcs=None,
    known=(),
    p: float = DEFAULT_PROBABILITY,
    var_change: str = "default",
    engine=DEFAULT_ENGINE,
    rng=None,
    context: Optional[RuntimeContext] = None,
) -> Union[List[bool], Dict[sympy.Symbol, bool]]:
    """
    Assesses global identifiability of an ODE model.

    Same arguments as ``check_identifiability_ode``.

    Returns:
        One boolean per function when ``funcs`` is given, otherwise a dict
        mapping every parameter to whether it is globally identifiable.
    """
    result = check_identifiability_ode(
        ode, funcs, known=known, p=p, var_change=var_change, engine=engine, rng=rng, context=context
    )
    if funcs is not None:
        return result
    return dict(zip(ode.parameters, result))
