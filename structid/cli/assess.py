import argparse
import json
import logging
import sys

from structid.constants import DEFAULT_ENGINE, DEFAULT_PROBABILITY, VAR_CHANGE_POLICIES
from structid.exceptions import IdentifiabilityError
from structid.identifiability import assess_global_identifiability
from structid.models.ode import ODE, parse_expression


def setup_logging(verbosity: int):
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )
    return logging.getLogger("structid-assess")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Assess global identifiability of a polynomial ODE model."
    )
    parser.add_argument("--x", action="append", required=True, metavar="EQ",
                        help="State equation, e.g. \"x1' = -a*x1 + u\". Repeat for every state.")
    parser.add_argument("--y", action="append", required=True, metavar="EQ",
                        help="Output equation, e.g. \"y = x1\". Repeat for every output.")
    parser.add_argument("--inputs", nargs="*", default=[], help="Names of the input variables.")
    parser.add_argument("--check", action="append", default=None, metavar="FUNC",
                        help="Function to check. Repeatable. Defaults to every parameter.")
    parser.add_argument("--known", action="append", default=[], metavar="FUNC",
                        help="Quantity assumed to be known. Repeatable.")
    parser.add_argument("-p", type=float, default=DEFAULT_PROBABILITY,
                        help="Probability of correctness (default: %(default)s).")
    parser.add_argument("--engine", default=DEFAULT_ENGINE,
                        help="Groebner engine: groebner, f5b, singular or buchberger.")
    parser.add_argument("--var-change", default="default", choices=VAR_CHANGE_POLICIES)
    parser.add_argument("--seed", type=int, default=None, help="Seed of the random generator.")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON.")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logger = setup_logging(args.verbose)

    try:
        ode = ODE.from_strings(args.x, args.y, inputs=args.inputs)
        logger.info(f"Model: {ode}")
        funcs = [parse_expression(f) for f in args.check] if args.check is not None else None
        result = assess_global_identifiability(
            ode,
            funcs,
            known=[parse_expression(q) for q in args.known],
            p=args.p,
            var_change=args.var_change,
            engine=args.engine,
            rng=args.seed,
        )
    except IdentifiabilityError as e:
        logger.error(str(e))
        return 2

    names = args.check if args.check is not None else [str(v) for v in ode.parameters]
    values = list(result.values()) if isinstance(result, dict) else result
    if args.json:
        print(json.dumps(dict(zip(names, values)), indent=2))
    else:
        for name, value in zip(names, values):
            print(f"{name}: {'globally identifiable' if value else 'not identifiable'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
