from sybil import Sybil
from sybil.parsers.markdown import PythonCodeBlockParser
import pytest
import sympy

# Run the python blocks of the markdown walkthroughs next to the tests.
pytest_collect_file = Sybil(
    parsers=[
        PythonCodeBlockParser(),
    ],
    patterns=["*.md"],
).pytest()


@pytest.fixture
def scenario_b_model():
    """
    Two states where a and b only enter through a*b, one output.

        x1' = -a*b*x1
        x2' = x1 - x2
        y   = x2
    """
    from structid.models.ode import ODE

    a, b, x1, x2, y = sympy.symbols("a b x1 x2 y")
    return ODE({x1: -a * b * x1, x2: x1 - x2}, {y: x2})


@pytest.fixture
def input_model():
    """x' = -a*x + u, y = x: the decay rate is identifiable."""
    from structid.models.ode import ODE

    a, x, u, y = sympy.symbols("a x u y")
    return ODE({x: -a * x + u}, {y: x}, inputs=[u])
