"""
structid: randomized global identifiability of ODE model parameters.

A rational function of the parameters is globally identifiable when it lies in
the field generated by the coefficients of the model's input-output equations.
Membership is decided by a Monte Carlo algorithm that is correct with a
user-chosen probability p.

Submodules
----------
- `algebra.membership`: Degree bounds, point sampling and the saturation ideal
  behind `check_field_membership`.
- `algebra.generators`: Field generators from input-output equations and their
  exact simplification.
- `algebra.engines`: Groebner basis engines (sympy Buchberger and F5B).
- `models.ode`: Polynomial ODE models, input-output equations and Wronskians.
- `identifiability`: The end-to-end assessment pipeline.
- `cli`: The `structid-assess` command line tool.
"""

from structid.algebra.engines import GroebnerEngine, SympyEngine, get_engine
from structid.algebra.generators import extract_generators, simplify_field_generators
from structid.algebra.membership import check_field_membership
from structid.algebra.rings import RationalFunction, RingContext
from structid.context import RuntimeContext
from structid.exceptions import (
    ConfigurationError,
    DegeneracyError,
    IdentifiabilityError,
    UnrepresentableQuantity,
)
from structid.identifiability import (
    assess_global_identifiability,
    check_identifiability,
    check_identifiability_ode,
    extract_identifiable_functions,
)
from structid.models.ode import ODE

__all__ = [
    'ODE',
    'RationalFunction',
    'RingContext',
    'RuntimeContext',
    'GroebnerEngine',
    'SympyEngine',
    'get_engine',
    'check_field_membership',
    'extract_generators',
    'simplify_field_generators',
    'check_identifiability',
    'check_identifiability_ode',
    'assess_global_identifiability',
    'extract_identifiable_functions',
    'IdentifiabilityError',
    'ConfigurationError',
    'DegeneracyError',
    'UnrepresentableQuantity',
]
