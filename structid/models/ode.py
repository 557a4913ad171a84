import logging
import re
import numpy as np
import sympy
from typing import Dict, List, Optional, Sequence, Tuple

from structid.algebra.rings import RationalFunction
from structid.constants import VAR_CHANGE_POLICIES, WRONSKIAN_SAMPLE_BOUND
from structid.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def parse_expression(text: str) -> sympy.Expr:
    """Parses ``text`` turning every identifier into a plain symbol."""
    names = {name: sympy.Symbol(name) for name in _IDENTIFIER.findall(text)}
    return sympy.sympify(text, locals=names)


class ODE:
    """
    Polynomial ODE model with outputs.

        x' = f(x, u, theta)
        y  = h(x, u, theta)

    Inputs are treated through their jets: ``u`` itself is the order 0 jet and
    ``u_k`` stands for the k-th derivative. Output jets are named ``y_k``.

    Args:
        x_equations: Mapping state symbol -> right-hand side.
        y_equations: Mapping output symbol -> output function.
        parameters: Parameter symbols. Defaults to every symbol that is neither
            a state nor an input, sorted by name.
        inputs: Input symbols.
    """

    def __init__(
        self,
        x_equations: Dict,
        y_equations: Dict,
        parameters: Optional[Sequence] = None,
        inputs: Optional[Sequence] = None,
    ):
        if not x_equations:
            raise ConfigurationError("An ODE model needs at least one state.")
        if not y_equations:
            raise ConfigurationError("An ODE model needs at least one output.")
        self.x_equations = {sympy.sympify(x): sympy.expand(sympy.sympify(f)) for x, f in x_equations.items()}
        self.y_equations = {sympy.sympify(y): sympy.expand(sympy.sympify(h)) for y, h in y_equations.items()}
        self.states = tuple(self.x_equations)
        self.outputs = tuple(self.y_equations)
        self.inputs = tuple(sympy.sympify(u) for u in (inputs or ()))

        rhs_symbols = set()
        for expr in list(self.x_equations.values()) + list(self.y_equations.values()):
            rhs_symbols |= expr.free_symbols
        if parameters is None:
            parameters = sorted(rhs_symbols - set(self.states) - set(self.inputs), key=str)
        self.parameters = tuple(sympy.sympify(p) for p in parameters)

        overlap = set(self.outputs) & (set(self.states) | set(self.inputs) | set(self.parameters))
        if overlap:
            raise ConfigurationError(f"Output names {sorted(map(str, overlap))} clash with other variables.")
        all_vars = self.states + self.inputs + self.parameters
        unknown = rhs_symbols - set(all_vars)
        if unknown:
            raise ConfigurationError(f"Symbols {sorted(map(str, unknown))} are not states, inputs or parameters.")
        for lhs, expr in list(self.x_equations.items()) + list(self.y_equations.items()):
            if not expr.is_polynomial(*all_vars):
                raise ConfigurationError(f"Right-hand side of {lhs} is not polynomial: {expr}")

        # jet symbol -> (input or output, order)
        self._input_jets: Dict[sympy.Symbol, Tuple[sympy.Symbol, int]] = {u: (u, 0) for u in self.inputs}
        self._output_jets: Dict[sympy.Symbol, Tuple[sympy.Symbol, int]] = {}
        for y in self.outputs:
            for k in range(len(self.states) + 1):
                self.output_jet(y, k)

    @classmethod
    def from_strings(cls, x_strings: Sequence[str], y_strings: Sequence[str], inputs: Sequence[str] = (), parameters=None):
        """
        Parses equations such as ``"x1' = -a*x1 + u"`` and ``"y = x1"``.

        Every identifier becomes a plain symbol, so names like ``beta``, ``I``
        or ``S`` are not confused with sympy objects.
        """
        def split(line):
            if "=" not in line:
                raise ConfigurationError(f"Expected an equation 'lhs = rhs', got '{line}'.")
            lhs, rhs = line.split("=", 1)
            lhs = lhs.strip().replace("(t)", "").rstrip("'").strip()
            if not _IDENTIFIER.fullmatch(lhs):
                raise ConfigurationError(f"Invalid left-hand side in '{line}'.")
            return sympy.Symbol(lhs), parse_expression(rhs.replace("(t)", ""))

        x_equations = dict(split(line) for line in x_strings)
        y_equations = dict(split(line) for line in y_strings)
        inputs = [sympy.Symbol(u) for u in inputs]
        if parameters is not None:
            parameters = [sympy.Symbol(str(p)) for p in parameters]
        return cls(x_equations, y_equations, parameters=parameters, inputs=inputs)

    def __repr__(self):
        lines = [f"{x}' = {f}" for x, f in self.x_equations.items()]
        lines += [f"{y} = {h}" for y, h in self.y_equations.items()]
        return "ODE(" + ", ".join(lines) + ")"

    # Jets and Lie derivatives

    def input_jet(self, u: sympy.Symbol, order: int) -> sympy.Symbol:
        if order == 0:
            return u
        jet = sympy.Symbol(f"{u.name}_{order}")
        self._input_jets[jet] = (u, order)
        return jet

    def output_jet(self, y: sympy.Symbol, order: int) -> sympy.Symbol:
        jet = sympy.Symbol(f"{y.name}_{order}")
        self._output_jets[jet] = (y, order)
        return jet

    def _jet_order(self, symbol) -> int:
        if symbol in self._output_jets:
            return self._output_jets[symbol][1]
        if symbol in self._input_jets:
            return self._input_jets[symbol][1]
        return 0

    def lie_derivative(self, expr) -> sympy.Expr:
        """Time derivative of ``expr`` along the dynamics, input jets included."""
        expr = sympy.sympify(expr)
        result = sum(sympy.diff(expr, x) * f for x, f in self.x_equations.items())
        for symbol in expr.free_symbols:
            if symbol in self._input_jets:
                u, order = self._input_jets[symbol]
                result += sympy.diff(expr, symbol) * self.input_jet(u, order + 1)
        return sympy.expand(result)

    def lie_derivatives(self, expr, order: int) -> List[sympy.Expr]:
        """[expr, L expr, ..., L^order expr]."""
        derivatives = [sympy.expand(sympy.sympify(expr))]
        for _ in range(order):
            derivatives.append(self.lie_derivative(derivatives[-1]))
        return derivatives

    def _output_substitution(self, order: int) -> Dict[sympy.Symbol, sympy.Expr]:
        """Output jets up to ``order`` in terms of states, inputs and parameters."""
        substitution = {}
        for y, h in self.y_equations.items():
            for k, derivative in enumerate(self.lie_derivatives(h, order)):
                substitution[self.output_jet(y, k)] = derivative
        return substitution

    # Input-output equations

    def find_ioequations(self, var_change: str = "default") -> List[sympy.Expr]:
        """
        Input-output equations of the model.

        The states are eliminated from y_k - L^k h, k = 0..n, with a lex
        Groebner basis over the field of rational functions in the parameters.
        Basis elements free of states are cleared of denominators.

        Args:
            var_change: "default", "yes" or "no". With "default" and "yes",
                states observed directly (y = x) are replaced by the output
                before elimination, which only shortens the computation.

        Returns:
            List of polynomials in output jets, input jets and parameters.
        """
        if var_change not in VAR_CHANGE_POLICIES:
            raise ConfigurationError(
                f"Unknown variable change policy '{var_change}'. Available: {list(VAR_CHANGE_POLICIES)}"
            )
        n = len(self.states)

        substitution = {}
        if var_change in ("default", "yes"):
            for y, h in self.y_equations.items():
                if h in self.states and h not in substitution:
                    substitution[h] = self.output_jet(y, 0)
        if substitution:
            logger.debug(f"\tReplacing observed states {list(substitution)}")

        equations = []
        for y, h in self.y_equations.items():
            for k, derivative in enumerate(self.lie_derivatives(h, n)):
                jet = self.output_jet(y, k)
                eq = sympy.expand((jet - derivative).xreplace(substitution))
                if eq != 0:
                    equations.append(eq)
        eliminate = [x for x in self.states if x not in substitution]
        parameters = set(self.parameters)
        jets = [
            v for v in set().union(*(eq.free_symbols for eq in equations))
            if v not in eliminate and v not in parameters
        ]
        # Highest derivatives first so that basis elements are monic in them.
        jets.sort(key=lambda v: (-self._jet_order(v), str(v)))

        domain = sympy.QQ.frac_field(*self.parameters) if self.parameters else sympy.QQ
        logger.debug(f"Eliminating {len(eliminate)} states from {len(equations)} equations")
        gb = sympy.groebner(equations, *eliminate, *jets, order="lex", domain=domain)

        states = set(eliminate)
        io_equations = []
        for g in gb.exprs:
            if g.free_symbols & states:
                continue
            numerator, _ = sympy.fraction(sympy.together(g))
            io_equations.append(sympy.expand(numerator))
        logger.debug(f"Found {len(io_equations)} input-output equations")
        return io_equations

    # Wronskians

    def wronskians(self, io_equations, rng=None) -> List[sympy.Matrix]:
        """
        Wronskians of the monomials of each input-output equation.

        Row r holds the r-th time derivatives of the monomials along the
        dynamics. Entries are evaluated at a random integer point of the
        states, input jets and parameters, so ranks hold with high probability.
        """
        rng = np.random.default_rng(rng)
        parameters = set(self.parameters)
        matrices = []
        for eq in io_equations:
            eq = sympy.sympify(eq)
            jets = sorted(eq.free_symbols - parameters, key=str)
            monomials = [sympy.Mul(*(v ** e for v, e in zip(jets, exps))) for exps in sympy.Poly(eq, *jets).monoms()]
            max_order = max((self._output_jets[v][1] for v in jets if v in self._output_jets), default=0)
            substitution = self._output_substitution(max_order)
            columns = [self.lie_derivatives(m.xreplace(substitution), len(monomials) - 1) for m in monomials]
            symbolic = sympy.Matrix(len(monomials), len(monomials), lambda r, c: columns[c][r])
            point = {
                v: sympy.Integer(int(rng.integers(-WRONSKIAN_SAMPLE_BOUND, WRONSKIAN_SAMPLE_BOUND + 1)))
                for v in sorted(symbolic.free_symbols, key=str)
            }
            matrices.append(symbolic.xreplace(point))
        return matrices

    @staticmethod
    def matrix_rank(matrix: sympy.Matrix) -> int:
        return sympy.Matrix(matrix).rank()

    # Generators involving states

    def state_generators(self) -> List[List[sympy.Expr]]:
        """
        Generators built from the known output and input jets.

        Returns:
            A group [denominator, numerator] for L^k h, k = 0..n, of every
            output h, and [1, u_k] for every input jet they involve.
        """
        n = len(self.states)
        groups = []
        jets = set()
        for h in self.y_equations.values():
            for derivative in self.lie_derivatives(h, n):
                groups.append(RationalFunction.from_expr(derivative).as_group())
                jets |= {s for s in derivative.free_symbols if s in self._input_jets}
        for jet in sorted(jets, key=str):
            groups.append([sympy.Integer(1), jet])
        return groups

    def find_submodels(self) -> List[Tuple[sympy.Symbol, ...]]:
        """
        Proper subsets of states closed under the dynamics that carry an output.

        A subset is closed when the right-hand sides of its states only involve
        states of the subset.
        """
        depends = {x: f.free_symbols & set(self.states) for x, f in self.x_equations.items()}
        closures = set()
        for x in self.states:
            closure, stack = set(), [x]
            while stack:
                state = stack.pop()
                if state not in closure:
                    closure.add(state)
                    stack.extend(depends[state])
            closures.add(frozenset(closure))
        submodels = []
        for closure in closures:
            if len(closure) == len(self.states):
                continue
            observed = [
                h for h in self.y_equations.values()
                if (h.free_symbols & set(self.states)) and (h.free_symbols & set(self.states)) <= closure
            ]
            if observed:
                submodels.append(tuple(x for x in self.states if x in closure))
        return sorted(submodels, key=lambda s: (len(s), [str(x) for x in s]))
