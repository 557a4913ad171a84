# Default probability of correctness for the randomized membership test.
DEFAULT_PROBABILITY = 0.99

# Groebner engine used when the caller does not pick one.
# "groebner" maps to sympy's F5B implementation, "singular" to Buchberger.
DEFAULT_ENGINE = "groebner"

# Variable change policies accepted by ODE.find_ioequations.
# They only change how the states are eliminated, never the result.
VAR_CHANGE_POLICIES = ("default", "yes", "no")

# Number of evaluation points drawn before giving up on a point
# that annihilates a pivot or a candidate denominator.
MAX_RESAMPLES = 10

# Half-width of the integer box used to evaluate Wronskians.
WRONSKIAN_SAMPLE_BOUND = 10 ** 4

# Name prefix of the auxiliary variables inverting the pivots.
SATURATION_PREFIX = "sat_aux"
