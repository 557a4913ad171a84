import itertools

import numpy as np
import pytest
import sympy

from structid.algebra import membership
from structid.algebra.engines import SympyEngine, get_engine
from structid.algebra.membership import (
    check_field_membership,
    degree_bound,
    find_pivots,
    sample_point,
    sampling_bound,
    saturation_ideal,
    uniform_integer,
    validate_groups,
)
from structid.algebra.rings import RationalFunction
from structid.constants import MAX_RESAMPLES
from structid.context import RuntimeContext
from structid.exceptions import ConfigurationError, DegeneracyError

x, y, z, s = sympy.symbols("x y z s")


class ExplodingRng:
    """Stands in for a random source that must never be touched."""

    def __getattr__(self, name):
        raise AssertionError(f"random source used before validation ({name})")


def _bound_for(groups, candidates, gens=(x, y)):
    groups = validate_groups(groups)
    candidates = [RationalFunction.from_expr(c) for c in candidates]
    pivots = find_pivots(groups, gens)
    return degree_bound(groups, pivots, candidates, gens)


def test_pivot_is_lowest_degree_member():
    groups = validate_groups([[x * y, x, x ** 2], [0, y ** 2, y + 1]])
    assert find_pivots(groups, (x, y)) == [x, y + 1]


def test_degree_bound_scenario_a():
    # common = deg(x) = 1, so D = max(2, 1 - 1 + 2, 1 + 1, 1 + 2, 1 + 1) = 3
    assert _bound_for([[x, x * y]], [y, y ** 2, x]) == 3


def test_degree_bound_counts_candidate_denominators():
    # common = deg(x) + deg(y) = 2, candidate x/y contributes 2 - 1 + 1
    assert _bound_for([[x, x * y]], [x / y]) == 3
    assert _bound_for([[1, x]], [sympy.Integer(1) / (x * y)]) == 3


def test_degree_bound_is_monotone():
    base = _bound_for([[x, x * y]], [y])
    assert _bound_for([[x, x * y ** 3]], [y]) >= base
    assert _bound_for([[x, x * y]], [y ** 4]) >= base
    assert _bound_for([[x, x * y]], [y / (x + 1)]) >= base


def test_sampling_bound_formula():
    assert sampling_bound(3, 2, 3, 0.5) == 3 * 3 ** 5 * 3 * 2
    assert sampling_bound(2, 0, 1, 0.75) == 3 * 2 ** 3 * 4


def test_sampling_bound_is_monotone():
    assert sampling_bound(4, 2, 3, 0.9) >= sampling_bound(3, 2, 3, 0.9)
    assert sampling_bound(3, 2, 4, 0.9) >= sampling_bound(3, 2, 3, 0.9)
    assert sampling_bound(3, 2, 3, 0.99) >= sampling_bound(3, 2, 3, 0.9)


@pytest.mark.parametrize("p", [0, 1, -0.5, 1.5, True])
def test_sampling_bound_rejects_invalid_probability(p):
    with pytest.raises(ConfigurationError):
        sampling_bound(3, 2, 3, p)


def test_uniform_integer_small_bound_covers_range():
    rng = np.random.default_rng(0)
    draws = {uniform_integer(rng, 2) for _ in range(200)}
    assert draws == {-2, -1, 0, 1, 2}


def test_uniform_integer_huge_bound_stays_in_range():
    rng = np.random.default_rng(1)
    bound = 10 ** 40
    draws = [uniform_integer(rng, bound) for _ in range(50)]
    assert all(-bound <= d <= bound for d in draws)
    assert any(abs(d) > 2 ** 64 for d in draws)


def test_sample_point_is_reproducible():
    first = sample_point([x, y], 1000, rng=5)
    second = sample_point([x, y], 1000, rng=5)
    assert first == second
    assert set(first) == {x, y}


def test_saturation_ideal_contents():
    groups = validate_groups([[x, x * y]])
    equations = saturation_ideal(groups, [x], {x: sympy.Integer(2), y: sympy.Integer(3)}, [s])
    assert equations == [sympy.expand(2 * x * y - 6 * x), x * s - 1]


def test_saturation_ideal_uses_pivot_not_its_value():
    groups = validate_groups([[y + 1, x]])
    equations = saturation_ideal(groups, [y + 1], {x: sympy.Integer(4), y: sympy.Integer(1)}, [s])
    assert sympy.expand(y * s + s - 1) in equations


def test_scenario_a():
    assert check_field_membership([[x, x * y]], [y, y ** 2, x], rng=0) == [True, True, False]


def test_fixed_point_is_deterministic():
    point = {x: 2, y: 3}
    first = check_field_membership([[x, x * y]], [y, y ** 2, x], point=point)
    second = check_field_membership([[x, x * y]], [y, y ** 2, x], point=point)
    assert first == second == [True, True, False]


def test_accuracy_over_independent_trials():
    p = 0.9
    trials = 10
    expected = [True, False, True]
    candidates = [x ** 2 + y ** 2, y, (x * x + 1) / (y * y + 1)]
    groups = [[1, x ** 2], [1, y ** 2]]
    correct = sum(
        check_field_membership(groups, candidates, p=p, rng=seed) == expected for seed in range(trials)
    )
    assert correct >= p * trials


def test_rational_candidates_and_pairs():
    groups = [[1, x + y], [1, x * y]]
    candidates = [
        (x ** 2 + y ** 2) / (x * y),
        RationalFunction(x, y),
        (x ** 2 + y ** 2, x * y + 1),
    ]
    assert check_field_membership(groups, candidates, rng=3) == [True, False, True]


def test_constant_candidate_is_always_member():
    assert check_field_membership([[1, x]], [sympy.Rational(7, 3)], rng=4) == [True]


def test_single_member_group_generates_constants():
    assert check_field_membership([[x + 1]], [x], gens=[x], rng=4) == [False]


def test_empty_candidates():
    assert check_field_membership([[1, x]], []) == []


def test_engines_agree():
    groups = [[x, x * y], [1, z ** 2]]
    candidates = [y, z, z ** 2 + y]
    f5b = check_field_membership(groups, candidates, engine="f5b", rng=11)
    buchberger = check_field_membership(groups, candidates, engine=SympyEngine("buchberger"), rng=11)
    assert f5b == buchberger == [True, False, True]


@pytest.mark.parametrize(
    "groups",
    [[], [[]], [[x], []], [[0, 0]], "x"],
)
def test_malformed_groups_fail_before_sampling(groups):
    with pytest.raises(ConfigurationError):
        check_field_membership(groups, [x], rng=ExplodingRng())


@pytest.mark.parametrize("p", [0.0, 1.0, 2.0, -0.1])
def test_invalid_probability_fails_before_sampling(p):
    with pytest.raises(ConfigurationError):
        check_field_membership([[1, x]], [x], p=p, rng=ExplodingRng())


def test_unknown_engine():
    with pytest.raises(ConfigurationError):
        check_field_membership([[1, x]], [x], engine="magma", rng=ExplodingRng())


def test_candidate_outside_ring():
    with pytest.raises(ConfigurationError):
        check_field_membership([[1, x]], [z], gens=[x])


def test_group_outside_ring():
    with pytest.raises(ConfigurationError):
        check_field_membership([[1, x * z]], [x], gens=[x], rng=0)
    assert check_field_membership([[1, x * z]], [x], rng=0) == [False]


def test_fixed_point_on_pivot_zero_locus():
    with pytest.raises(DegeneracyError):
        check_field_membership([[x, x * y]], [y], point={x: 0, y: 3})


def test_fixed_point_must_be_integral():
    with pytest.raises(ConfigurationError):
        check_field_membership([[x, x * y]], [y], point={x: sympy.Rational(1, 2), y: 3})


def _scripted_draws(monkeypatch, values):
    draws = iter(values)
    calls = []

    def fake_uniform_integer(rng, bound):
        calls.append(bound)
        return next(draws)

    monkeypatch.setattr(membership, "uniform_integer", fake_uniform_integer)
    return calls


def test_degenerate_draw_is_resampled(monkeypatch):
    # Variables are drawn in the order x, y; the first draw zeroes the pivot x.
    calls = _scripted_draws(monkeypatch, [0, 3, 2, 5])
    assert check_field_membership([[x, x * y]], [y, x], rng=0) == [True, False]
    assert len(calls) == 4


def test_degeneracy_after_max_resamples(monkeypatch):
    calls = _scripted_draws(monkeypatch, itertools.repeat(0))
    with pytest.raises(DegeneracyError):
        check_field_membership([[x, x * y]], [y], rng=0)
    assert len(calls) == 2 * MAX_RESAMPLES


def test_fixed_point_missing_variable():
    with pytest.raises(ConfigurationError):
        check_field_membership([[x, x * y]], [y], point={x: 1})


def test_context_receives_bounds():
    context = RuntimeContext()
    check_field_membership([[x, x * y]], [y, y ** 2, x], p=0.5, rng=0, context=context)
    assert context.info["degree_bound"] == 3
    assert context.info["sampling_bound"] == sampling_bound(3, 2, 3, 0.5)
    assert context.info["ideal_size"] == 2


def test_get_engine():
    assert get_engine("groebner").method == "f5b"
    assert get_engine("Singular").method == "buchberger"
    engine = SympyEngine("buchberger")
    assert get_engine(engine) is engine
    with pytest.raises(ConfigurationError):
        get_engine(42)
    with pytest.raises(ConfigurationError):
        SympyEngine("magma")
