from structid.algebra.engines import GroebnerEngine, SympyEngine, get_engine
from structid.algebra.generators import GeneratorBuckets, extract_generators, simplify_field_generators
from structid.algebra.membership import check_field_membership
from structid.algebra.rings import RationalFunction, RingContext
