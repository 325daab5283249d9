#!/usr/bin/env python3
#
#   Multivariate Polynomial GCD
#
#   Brown's dense and Zippel's sparse modular algorithms over fields, and a prime-by-prime lifting over Z
#

import logging
from functools import reduce
from itertools import islice
from math import isqrt
from typing import List, Optional

from libpolygcd.basic_types import (
    MAX_DISTINCT_DRAWS,
    IntegerRing,
    Polynomial,
    GF,
    ZZ,
    QQ,
    crt,
    gcd,
    monomial_div,
    monomial_gcd,
    primes_from,
    symmetric_mod,
)
from libpolygcd.errors import DomainMismatch, EvaluationStackExhausted, NotAField, SparseInterpolationExhausted
from libpolygcd.newton_interp import Interpolation
from libpolygcd.permutation import Permutation
from libpolygcd.rng import resolve
from libpolygcd.univariate_gcd import polynomial_gcd as univariate_gcd
from libpolygcd.zippel_interp import create_interpolation

logger = logging.getLogger(__name__)

# Sparse interpolation failures tolerated in one Zippel call
MAX_SPARSE_INTERPOLATION_FAILS = 1000
# Sparse interpolations allowed once the number of dense points exceeds the degree bound
ALLOWED_OVER_INTERPOLATED_ATTEMPTS = 32
# Retries of extension degrees and of computations that substituted random values
MAX_OVER_ITERATIONS = 16
# Fields with fewer than CARDINALITY_FACTOR * (largest degree bound) elements are extended
CARDINALITY_FACTOR = 5
FIRST_LIFTING_PRIME = 1031
MAX_LIFTING_PRIMES = 4096
# Cap on evaluation points drawn from infinite fields
MAX_EVALUATION_POINTS = 1 << 16
# Draws of a value for an absent variable that keep every term alive
MAX_EVALUATION_ATTEMPTS = 32

def _ensure_same_ring(a : Polynomial, b : Polynomial):
    if a.ring != b.ring:
        raise DomainMismatch(f"{a.ring} and {b.ring} differ")

def _ensure_field(a : Polynomial, b : Polynomial):
    _ensure_same_ring(a, b)
    if not a.ring.coeff_ring.is_field():
        raise NotAField(f"this GCD algorithm works over fields, got {a.ring.coeff_ring}")

def evaluation_points(cr, rnd, used : set, limit : Optional[int]):
    """
    Yields random elements of cr that are not in `used`, recording each one in `used`. Stops once `used` holds
    `limit` elements (the domain size, or MAX_EVALUATION_POINTS for infinite domains) or when no fresh element
    turns up within MAX_DISTINCT_DRAWS draws.
    """
    if limit is None:
        limit = MAX_EVALUATION_POINTS
    misses = 0
    while len(used) < limit and misses < MAX_DISTINCT_DRAWS:
        point = cr.rand_elem(rnd)
        if point in used:
            misses += 1
            continue
        misses = 0
        used.add(point)
        yield point

########################################################################################################################
#   Input Preparation
########################################################################################################################

def gcd_with_monomial(monomial, poly : Polynomial) -> Polynomial:
    return Polynomial.monomial(poly.ring, reduce(monomial_gcd, poly.terms, monomial))

def trivial_gcd(a : Polynomial, b : Polynomial) -> Optional[Polynomial]:
    """
    Closed form GCD when an input is zero, constant or a single term, otherwise None
    """
    if a.is_zero():
        return b
    if b.is_zero():
        return a
    if a.is_constant() or b.is_constant():
        return a.ring.one()
    if a.is_monomial():
        return gcd_with_monomial(a.leading_monomial(), b)
    if b.is_monomial():
        return gcd_with_monomial(b.leading_monomial(), a)
    return None

def reduce_monomial_content(a : Polynomial, b : Polynomial):
    """
    Removes the monomial content of a and b, returns (a, b, monomial GCD)
    """
    a_content = a.monomial_content()
    b_content = b.monomial_content()
    return a.divide_monomial(a_content), b.divide_monomial(b_content), monomial_gcd(a_content, b_content)

def evaluate_at_random_preserving_skeleton(poly : Polynomial, var : int, rnd) -> Polynomial:
    """
    Substitutes a random value for `var`, trying to keep every term of poly alive
    """
    cr = poly.ring.coeff_ring
    expected = {m[:var] + (0,) + m[var + 1:] for m in poly.terms}
    for _ in range(MAX_EVALUATION_ATTEMPTS):
        evaluated = poly.evaluate(var, cr.rand_elem(rnd))
        if evaluated.terms.keys() == expected:
            break
    # a collapsed skeleton only costs a retry after revalidation
    return evaluated

class GCDInput:
    """
    Inputs reduced for the modular algorithms: monomial content removed, variables absent from one input
    substituted away and the rest renamed so that the degree bounds descend. `early_gcd` is set instead when the
    GCD was found during preparation.
    """

    def __init__(self, a=None, b=None, monomial_gcd=None, evaluation_stack_limit=None, degree_bounds=None,
                 permutation : Permutation = None, last_present_variable : int = -1, extension_degree : int = 1,
                 substituted : bool = False, early_gcd : Polynomial = None):
        self.a = a
        self.b = b
        self.monomial_gcd = monomial_gcd
        # domain cardinality, None if infinite
        self.evaluation_stack_limit = evaluation_stack_limit
        self.degree_bounds = degree_bounds
        self.permutation = permutation
        self.last_present_variable = last_present_variable
        # degree of the extension needed for enough evaluation points
        self.extension_degree = extension_degree
        # whether random values were substituted, the result then needs revalidation
        self.substituted = substituted
        self.early_gcd = early_gcd

    def restore_gcd(self, result : Polynomial) -> Polynomial:
        """
        Recovers the initial order of variables and multiplies the monomial content back
        """
        return result.rename_variables(self.permutation.inverse()).multiply_monomial(self.monomial_gcd)

def prepared_gcd_input(a : Polynomial, b : Polynomial, rnd=None) -> GCDInput:
    _ensure_same_ring(a, b)
    rnd = resolve(rnd)

    trivial = trivial_gcd(a, b)
    if trivial is not None:
        return GCDInput(early_gcd=trivial)

    ring = a.ring
    domain_size = ring.coeff_ring.size()

    a, b, mono_gcd = reduce_monomial_content(a, b)

    a_degrees = a.degrees()
    b_degrees = b.degrees()
    degree_bounds = [min(da, db) for da,db in zip(a_degrees, b_degrees)]
    used_variables = [i for i,d in enumerate(degree_bounds) if d != 0]

    if len(used_variables) == 0:
        # gcd is a monomial
        return GCDInput(early_gcd=Polynomial.monomial(ring, mono_gcd))

    substituted = False
    for i,bound in enumerate(degree_bounds):
        if bound != 0:
            continue
        # the variable is absent from one of the inputs, so it is absent from the gcd
        if a_degrees[i] != 0:
            a = evaluate_at_random_preserving_skeleton(a, i, rnd)
            substituted = True
        elif b_degrees[i] != 0:
            b = evaluate_at_random_preserving_skeleton(b, i, rnd)
            substituted = True

    if len(used_variables) == 1:
        # switch to univariate gcd
        var = used_variables[0]
        g = univariate_gcd(a.as_univariate(var), b.as_univariate(var))
        return GCDInput(early_gcd=Polynomial.from_univariate(ring, g, var).multiply_monomial(mono_gcd),
                        substituted=substituted)

    # the first variable gets the largest bound (univariate gcds are fast), absent variables go last
    permutation = Permutation.sorting(degree_bounds, reverse=True)
    degree_bounds = list(permutation.permute(degree_bounds))
    last_present_variable = len(used_variables) - 1

    a = a.rename_variables(permutation)
    b = b.rename_variables(permutation)

    # check whether the coefficient domain is large enough
    extension_degree = 1
    cardinality_bound = CARDINALITY_FACTOR * max(degree_bounds)
    if domain_size is not None and domain_size < cardinality_bound:
        extension_degree = 2
        while domain_size ** extension_degree < cardinality_bound:
            extension_degree += 1

    return GCDInput(a, b, mono_gcd, domain_size, degree_bounds, permutation, last_present_variable,
                    extension_degree, substituted)

def _with_prepared_input(a : Polynomial, b : Polynomial, rnd, solver) -> Polynomial:
    # runs solver(gcd_input, rnd), and retries while random substitutions produce a non-divisor
    for attempt in range(MAX_OVER_ITERATIONS):
        gcd_input = prepared_gcd_input(a, b, rnd)
        if gcd_input.early_gcd is not None:
            result = gcd_input.early_gcd
        else:
            result = solver(gcd_input, rnd)
        if not gcd_input.substituted or (a.is_divisible_by(result) and b.is_divisible_by(result)):
            return result
        logger.debug("substitution of absent variables gave a non-divisor, attempt %d", attempt + 1)
    raise EvaluationStackExhausted(f"no random substitution produced a GCD after {MAX_OVER_ITERATIONS} attempts")

########################################################################################################################
#   Common Parts of Brown and Zippel
########################################################################################################################

def _univariate_content(poly : Polynomial, variable : int):
    view = poly.as_over_univariate(variable)
    return view, reduce(univariate_gcd, view.values())

def make_primitive(a : Polynomial, b : Polynomial, variable : int):
    """
    Views a and b as polynomials in x_0..x_{variable-1} with coefficients in K[x_variable] and removes their
    contents. Returns (primitive a, primitive b, gcd of the contents, gcd of the leading coefficients), the last two
    being univariate polynomials in x_variable.
    """
    ring = a.ring
    a_view, a_content = _univariate_content(a, variable)
    b_view, b_content = _univariate_content(b, variable)

    a_view = {k : u.divide_exact(a_content) for k,u in a_view.items()}
    b_view = {k : u.divide_exact(b_content) for k,u in b_view.items()}

    content_gcd = univariate_gcd(a_content, b_content)
    lc_gcd = univariate_gcd(a_view[a.leading_key(a_view)], b_view[b.leading_key(b_view)])

    a = Polynomial.from_over_univariate(ring, variable, a_view)
    b = Polynomial.from_over_univariate(ring, variable, b_view)
    return a, b, content_gcd, lc_gcd

def _division_check(a : Polynomial, b : Polynomial, content_gcd, interpolation : Interpolation, variable : int):
    if interpolation is None:
        return None
    view, content = _univariate_content(interpolation.get_interpolating_polynomial(), variable)
    candidate = Polynomial.from_over_univariate(a.ring, variable,
                                                {k : u.divide_exact(content) for k,u in view.items()})
    if not a.is_divisible_by(candidate) or not b.is_divisible_by(candidate):
        return None
    return candidate.multiply_by_univariate(content_gcd, variable)

def _unlucky(a : Polynomial, b : Polynomial, a_val : Polynomial, b_val : Polynomial, variable : int):
    # the evaluation dropped a degree in one of the remaining variables
    return any(a_val.degree(i) != a.degree(i) or b_val.degree(i) != b.degree(i) for i in range(variable))

def _univariate_base_case(a : Polynomial, b : Polynomial):
    g = univariate_gcd(a.as_univariate(0), b.as_univariate(0))
    if g.degree() == 0:
        return a.ring.one()
    return Polynomial.from_univariate(a.ring, g, 0)

def _embed(poly : Polynomial, ext) -> Polynomial:
    ring = poly.ring.to_coeff_ring(ext)
    return Polynomial._make(ring, {m : ext.embed(c) for m,c in poly.terms.items()})

def _gcd_over_extension(gcd_input : GCDInput, algorithm, rnd):
    """
    Computes the GCD of the reduced inputs over an extension GF(p^k) and projects the monic result back. The
    extension degree grows on each failure.
    """
    a, b = gcd_input.a, gcd_input.b
    cr = a.ring.coeff_ring
    degree = max(gcd_input.extension_degree, 2)
    for _ in range(MAX_OVER_ITERATIONS):
        ext = cr.extension(degree, rnd)
        if ext is None:
            break
        logger.debug("computing GCD over %s", ext)
        g = algorithm(_embed(a, ext), _embed(b, ext), rnd).monic()
        if all(ext.is_base_element(c) for c in g.terms.values()):
            g = Polynomial(a.ring, {m : ext.project(c) for m,c in g.terms.items()})
            if a.is_divisible_by(g) and b.is_divisible_by(g):
                return gcd_input.restore_gcd(g)
        degree += 1
    raise EvaluationStackExhausted(f"ran out of evaluation points over {cr} and its extensions")

########################################################################################################################
#   Brown's Algorithm
########################################################################################################################

def _brown_gcd(a : Polynomial, b : Polynomial, rnd, variable : int, degree_bounds : List[int],
               evaluation_stack_limit : Optional[int]) -> Optional[Polynomial]:
    trivial = trivial_gcd(a, b)
    if trivial is not None:
        return trivial

    if variable == 0:
        return _univariate_base_case(a, b)

    ring = a.ring
    cr = ring.coeff_ring
    a, b, content_gcd, lc_gcd = make_primitive(a, b, variable)

    trivial = trivial_gcd(a, b)
    if trivial is not None:
        return trivial.multiply_by_univariate(content_gcd, variable)

    # degree bound for the previous variable
    prev_var_exponent = degree_bounds[variable - 1]
    interpolation = None

    for point in evaluation_points(cr, rnd, set(), evaluation_stack_limit):
        lc_val = lc_gcd.evaluate(point)
        if cr.is_zero(lc_val):
            continue

        a_val = a.evaluate(variable, point)
        b_val = b.evaluate(variable, point)
        if _unlucky(a, b, a_val, b_val, variable):
            continue

        c_val = _brown_gcd(a_val, b_val, rnd, variable - 1, degree_bounds, evaluation_stack_limit)
        if c_val is None:
            continue

        curr_exponent = c_val.degree(variable - 1)
        if curr_exponent > prev_var_exponent:
            # unlucky homomorphism
            continue

        c_val = c_val.monic(lc_val)

        if curr_exponent < prev_var_exponent:
            # better degree bound detected, start over
            logger.debug("degree bound of x_%d lowered to %d", variable - 1, curr_exponent)
            interpolation = Interpolation(variable, point, c_val)
            degree_bounds[variable - 1] = prev_var_exponent = curr_exponent
            continue

        if interpolation is None:
            # first successful homomorphism
            interpolation = Interpolation(variable, point, c_val)
            continue

        changed = interpolation.update(point, c_val)
        if degree_bounds[variable] <= interpolation.number_of_points() or not changed:
            result = _division_check(a, b, content_gcd, interpolation, variable)
            if result is not None:
                return result

    # all elements of the domain were tried, last chance
    return _division_check(a, b, content_gcd, interpolation, variable)

def _brown_solver(gcd_input : GCDInput, rnd):
    if gcd_input.extension_degree > 1:
        return _gcd_over_extension(gcd_input, brown_gcd, rnd)

    result = _brown_gcd(gcd_input.a, gcd_input.b, rnd, gcd_input.last_present_variable,
                        list(gcd_input.degree_bounds), gcd_input.evaluation_stack_limit)
    if result is None:
        # the ground field is too small
        return _gcd_over_extension(gcd_input, brown_gcd, rnd)
    return gcd_input.restore_gcd(result)

def brown_gcd(a : Polynomial, b : Polynomial, rnd=None) -> Polynomial:
    """
    Monic GCD over a field by Brown's algorithm with dense interpolation
    """
    _ensure_field(a, b)
    rnd = resolve(rnd)
    return _with_prepared_input(a, b, rnd, _brown_solver).monic()

########################################################################################################################
#   Zippel's Algorithm
########################################################################################################################

def _multivariate_coefficients(poly : Polynomial, variable : int):
    coeffs = [poly.coefficient_of(variable, d) for d in {m[variable] for m in poly.terms}]
    # the smallest coefficient first
    return sorted(coeffs, key=len)

def zippel_content_gcd(a : Polynomial, b : Polynomial, variable : int, rnd=None) -> Polynomial:
    """
    GCD of all coefficients of a and b with respect to `variable`
    """
    a_cfs = _multivariate_coefficients(a, variable)
    b_cfs = _multivariate_coefficients(b, variable)
    content = zippel_gcd(a_cfs[0], b_cfs[0], rnd)
    for c in a_cfs[1:] + b_cfs[1:]:
        if content.is_one():
            break
        content = zippel_gcd(c, content, rnd)
    return content

def _zippel_gcd(a : Polynomial, b : Polynomial, rnd, variable : int, degree_bounds : List[int],
                evaluation_stack_limit : Optional[int]) -> Optional[Polynomial]:
    trivial = trivial_gcd(a, b)
    if trivial is not None:
        return trivial

    if variable == 0:
        return _univariate_base_case(a, b)

    ring = a.ring
    cr = ring.coeff_ring
    a, b, content_gcd, lc_gcd = make_primitive(a, b, variable)

    trivial = trivial_gcd(a, b)
    if trivial is not None:
        return trivial.multiply_by_univariate(content_gcd, variable)

    global_evaluation_stack = set()
    failed_sparse_interpolations = 0
    tmp_degree_bounds = list(degree_bounds)

    for seed_point in evaluation_points(cr, rnd, global_evaluation_stack, evaluation_stack_limit):
        lc_val = lc_gcd.evaluate(seed_point)
        if cr.is_zero(lc_val):
            continue

        a_val = a.evaluate(variable, seed_point)
        b_val = b.evaluate(variable, seed_point)
        if _unlucky(a, b, a_val, b_val, variable):
            continue

        c_val = _zippel_gcd(a_val, b_val, rnd, variable - 1, tmp_degree_bounds, evaluation_stack_limit)
        if c_val is None:
            continue

        curr_exponent = c_val.degree(variable - 1)
        if curr_exponent > tmp_degree_bounds[variable - 1]:
            # unlucky homomorphism
            continue
        if curr_exponent < tmp_degree_bounds[variable - 1]:
            logger.debug("degree bound of x_%d lowered to %d", variable - 1, curr_exponent)
            tmp_degree_bounds[variable - 1] = curr_exponent

        c_val = c_val.monic(lc_val)

        sparse_interpolator = create_interpolation(variable, a, b, c_val, rnd)
        if sparse_interpolator is None:
            continue

        # dense interpolation of the skeleton coefficients
        dense_interpolation = Interpolation(variable, seed_point, c_val)
        # points evaluated by sparse interpolation only, the skeleton stays the same
        local_evaluation_stack = set(global_evaluation_stack)
        for point in evaluation_points(cr, rnd, local_evaluation_stack, evaluation_stack_limit):
            if dense_interpolation.number_of_points() > tmp_degree_bounds[variable] + ALLOWED_OVER_INTERPOLATED_ATTEMPTS:
                # an unlucky homomorphism may have spoiled the bounds
                tmp_degree_bounds = list(degree_bounds)
                break

            lc_val = lc_gcd.evaluate(point)
            if cr.is_zero(lc_val):
                continue

            c_val = sparse_interpolator.evaluate(point)
            if c_val is None or c_val.is_zero():
                failed_sparse_interpolations += 1
                if failed_sparse_interpolations == MAX_SPARSE_INTERPOLATION_FAILS:
                    raise SparseInterpolationExhausted(
                        f"sparse interpolation failed {MAX_SPARSE_INTERPOLATION_FAILS} times")
                logger.debug("sparse interpolation failed, picking a new seed point")
                tmp_degree_bounds = list(degree_bounds)
                break

            c_val = c_val.monic(lc_val)
            changed = dense_interpolation.update(point, c_val)
            if tmp_degree_bounds[variable] <= dense_interpolation.number_of_points() or not changed:
                result = _division_check(a, b, content_gcd, dense_interpolation, variable)
                if result is not None:
                    return result
        else:
            return None

    return None

def _zippel_solver(gcd_input : GCDInput, rnd):
    if gcd_input.extension_degree > 1:
        return _gcd_over_extension(gcd_input, zippel_gcd, rnd)

    a, b = gcd_input.a, gcd_input.b
    # content in the main variable avoids a degenerate LinZip system
    content = zippel_content_gcd(a, b, 0, rnd)
    a = a.divide_exact(content)
    b = b.divide_exact(content)

    result = _zippel_gcd(a, b, rnd, gcd_input.last_present_variable, list(gcd_input.degree_bounds),
                         gcd_input.evaluation_stack_limit)
    if result is None:
        # the ground field is too small
        return _gcd_over_extension(gcd_input, zippel_gcd, rnd)
    return gcd_input.restore_gcd(result * content)

def zippel_gcd(a : Polynomial, b : Polynomial, rnd=None) -> Polynomial:
    """
    Monic GCD over a field by Zippel's algorithm with sparse interpolation
    """
    _ensure_field(a, b)
    rnd = resolve(rnd)
    return _with_prepared_input(a, b, rnd, _zippel_solver).monic()

########################################################################################################################
#   GCD over Z
########################################################################################################################

def divide_skeleton_exact(dividend : Polynomial, divider : Polynomial) -> Optional[Polynomial]:
    """
    Quotient of the supports of dividend and divider, both taken with unit coefficients
    """
    if divider.is_constant():
        return dividend
    if divider.is_monomial():
        lm = divider.leading_monomial()
        if any(monomial_div(m, lm) is None for m in dividend.terms):
            return None
        return dividend.set_all_coefficients_to_unit().divide_monomial(lm)

    dividend = dividend.set_all_coefficients_to_unit()
    divider = divider.set_all_coefficients_to_unit()
    cr = dividend.ring.coeff_ring

    quotient = Polynomial.ZERO(dividend.ring)
    while not dividend.is_zero():
        q_mon = monomial_div(dividend.leading_monomial(), divider.leading_monomial())
        if q_mon is None:
            return None
        q = Polynomial.monomial(dividend.ring, q_mon, cr.divide_exact(dividend.leading_coeff(), divider.leading_coeff()))
        quotient = quotient + q
        dividend = dividend - divider * q
    return quotient

def interpolate_gcd(a : Polynomial, b : Polynomial, skeleton : Polynomial, rnd) -> Optional[Polynomial]:
    """
    GCD of a and b over a finite field assuming its support is that of `skeleton`, None if the assumption fails
    """
    content = zippel_content_gcd(a, b, 0, rnd)
    a = a.divide_exact(content)
    b = b.divide_exact(content)
    skeleton = divide_skeleton_exact(skeleton, content)
    if skeleton is None:
        return None

    interpolation = create_interpolation(-1, a, b, skeleton, rnd)
    if interpolation is None:
        return None
    g = interpolation.evaluate()
    if g is None:
        return None
    return g * content

def coefficient_bound(a : Polynomial, b : Polynomial) -> int:
    """
    Bound on the coefficients of any divisor of both a and b, the Mignotte bound of their Kronecker substitutions
    """
    degrees = [max(da, db) + 1 for da,db in zip(a.degrees(), b.degrees())]
    kronecker_degree = reduce(lambda x, y: x * y, degrees, 1) - 1

    def bound(f):
        norm = sum(c * c for c in f.terms.values())
        return (1 << kronecker_degree) * (isqrt(norm) + 1)

    return min(bound(a), bound(b))

def _modular_images(a : Polynomial, b : Polynomial, primes):
    # reductions of a and b modulo primes that keep both skeletons
    for prime in primes:
        F = GF(prime)
        a_mod = a.set_coeff_ring(F)
        b_mod = b.set_coeff_ring(F)
        if a_mod.same_skeleton(a) and b_mod.same_skeleton(b):
            yield prime, a_mod, b_mod

def _modular_solver(gcd_input : GCDInput, rnd):
    a, b = gcd_input.a, gcd_input.b
    ring = a.ring
    lc_gcd = gcd(a.leading_coeff(), b.leading_coeff())
    bound = 2 * lc_gcd * coefficient_bound(a, b)

    images = _modular_images(a, b, islice(primes_from(FIRST_LIFTING_PRIME), MAX_LIFTING_PRIMES))
    for base_prime, a_mod, b_mod in images:
        # the base image, scaled to the correct leading coefficient
        base = zippel_gcd(a_mod, b_mod, rnd).monic(lc_gcd % base_prime)
        if base.is_constant():
            return gcd_input.restore_gcd(ring.one())

        base_terms = dict(base.terms)
        base_degree = base.degree(0)
        modulus = base_prime
        previous = None

        for prime, a_mod, b_mod in images:
            F = a_mod.ring.coeff_ring
            skeleton = Polynomial(a_mod.ring, {m : 1 for m in base_terms})
            # new image via sparse interpolation on the known skeleton
            image = interpolate_gcd(a_mod, b_mod, skeleton, rnd)
            if image is None:
                # assumed form is wrong, start over
                logger.debug("skeleton interpolation failed modulo %d, restarting lifting", prime)
                break

            if image.is_constant():
                return gcd_input.restore_gcd(ring.one())

            if image.degree(0) < base_degree:
                # better degree bound, restart from this image
                logger.debug("smaller GCD degree modulo %d, restarting lifting", prime)
                base_terms = dict(image.monic(lc_gcd % prime).terms)
                base_degree = image.degree(0)
                modulus = prime
                previous = None
                continue

            if image.degree(0) > base_degree:
                # unlucky prime
                continue

            monic_factor = F.mul(F(lc_gcd), F.reciprocal(image.leading_coeff()))
            lifted = {}
            for m,c in base_terms.items():
                image_coeff = image[m]
                if F.is_zero(image_coeff):
                    # absent from the new image
                    continue
                lifted[m] = crt(c, modulus, F.mul(image_coeff, monic_factor), prime)
            base_terms = lifted
            modulus *= prime

            candidate = Polynomial(ring, {m : symmetric_mod(c, modulus) for m,c in base_terms.items()})
            candidate = candidate.primitive_part()
            if ((previous is not None and candidate == previous) or modulus > bound) and \
                    b.is_divisible_by(candidate) and a.is_divisible_by(candidate):
                return gcd_input.restore_gcd(candidate)
            previous = candidate

    raise EvaluationStackExhausted(f"no GCD after lifting over {MAX_LIFTING_PRIMES} primes")

def _positive(g : Polynomial) -> Polynomial:
    return -g if g.leading_coeff() < 0 else g

def modular_gcd(a : Polynomial, b : Polynomial, rnd=None) -> Polynomial:
    """
    GCD over Z, primitive part with positive leading coefficient times the GCD of the contents
    """
    _ensure_same_ring(a, b)
    if not isinstance(a.ring.coeff_ring, IntegerRing):
        raise DomainMismatch(f"modular GCD works over the integers, got {a.ring.coeff_ring}")
    rnd = resolve(rnd)

    if a.is_zero():
        return _positive(b)
    if b.is_zero():
        return _positive(a)

    content_gcd = gcd(a.content(), b.content())
    if a.is_constant() or b.is_constant():
        return a.ring(content_gcd)

    result = _with_prepared_input(a.primitive_part(), b.primitive_part(), rnd, _modular_solver)
    return _positive(result).scale(content_gcd)

########################################################################################################################
#   Dispatch
########################################################################################################################

def _clear_denominators(poly : Polynomial, ring_z) -> Polynomial:
    denominator = reduce(lambda x, y: x * y // gcd(x, y), (c.dnm for c in poly.terms.values()), 1)
    return Polynomial(ring_z, {m : (c * denominator).num for m,c in poly.terms.items()})

def polynomial_gcd(a : Polynomial, b : Polynomial, rnd=None) -> Polynomial:
    """
    GCD of two multivariate polynomials: monic over fields, primitive with positive leading coefficient (times
    the content GCD) over Z
    """
    _ensure_same_ring(a, b)
    cr = a.ring.coeff_ring
    if isinstance(cr, IntegerRing):
        return modular_gcd(a, b, rnd)
    if cr.is_rational():
        ring_z = a.ring.to_coeff_ring(ZZ)
        g = modular_gcd(_clear_denominators(a, ring_z), _clear_denominators(b, ring_z), rnd)
        return g.set_coeff_ring(QQ).monic()
    if cr.is_field():
        return zippel_gcd(a, b, rnd)
    raise NotAField(f"GCD over {cr} is not supported")

def polynomial_gcd_many(polys, rnd=None) -> Polynomial:
    polys = list(polys)
    assert len(polys) > 0
    result = polys[0]
    for p in polys[1:]:
        result = polynomial_gcd(result, p, rnd)
        if result.is_one():
            break
    if len(polys) == 1:
        result = polynomial_gcd(result, Polynomial.ZERO(result.ring), rnd)
    return result

########################################################################################################################
#   Unit Tests
########################################################################################################################

import random
import unittest
from unittest import mock

from libpolygcd.basic_types import PolynomialRing, Rational

def _random_poly(ring, rnd, n_terms, max_degree):
    cr = ring.coeff_ring
    terms = {}
    for _ in range(n_terms):
        m = tuple(rnd.randint(0, max_degree) for _ in range(ring.n_vars))
        terms[m] = cr(rnd.randint(1, 1000))
    return Polynomial(ring, terms)

class TestTrivial(unittest.TestCase):

    def setUp(self):
        self.R = PolynomialRing(GF(67), "xyz")

    def test_zero_and_unit(self):
        x,y,z = self.R.variables()
        a = x**2*y + z + 3
        zero = self.R.zero()
        one = self.R.one()
        self.assertEqual(polynomial_gcd(zero, a), a.monic())
        self.assertEqual(polynomial_gcd(a, zero), a.monic())
        self.assertEqual(polynomial_gcd(a, one), one)
        self.assertEqual(polynomial_gcd(a, self.R(5)), one)

    def test_monomial(self):
        x,y,z = self.R.variables()
        self.assertEqual(trivial_gcd(x**3*y**2, x**2*y*z**4 + x*y**3), x*y)
        self.assertEqual(polynomial_gcd(x**2*y*(x + z + 1), x*y**2*(x + z + 1)), x*y*(x + z + 1))

    def test_prepared_input(self):
        x,y,z = self.R.variables()
        a = (x + y**3 + 1) * (x*z + 2)
        b = (x + y**3 + 1) * (y*z**2 + 5)
        gcd_input = prepared_gcd_input(a, b, random.Random(2))
        self.assertIsNone(gcd_input.early_gcd)
        # y has the largest bound and comes first
        self.assertEqual(gcd_input.degree_bounds, [3, 1, 1])
        self.assertEqual(gcd_input.last_present_variable, 2)
        self.assertEqual(gcd_input.extension_degree, 1)
        self.assertFalse(gcd_input.substituted)
        self.assertEqual(gcd_input.restore_gcd(gcd_input.a), a)

    def test_tiny_field_extension_degree(self):
        R = PolynomialRing(GF(3), "xy")
        x,y = R.variables()
        g = x*y + x + 2
        gcd_input = prepared_gcd_input(g * (x + y**2 + 1), g * (x**2 + y + 2), random.Random(3))
        self.assertEqual(gcd_input.degree_bounds, [2, 2])
        self.assertEqual(gcd_input.extension_degree, 3)

class TestFiniteField(unittest.TestCase):

    def test_hensel_factors(self):
        R = PolynomialRing(GF(67), "ab")
        a,b = R.variables()
        factors = [
            b**2 + b**5 + b**7 + b**10,
            33 + a,
            22 + a,
            32 + 8*a + a**2,
            32 + 59*a + a**2,
            24 + 5*a + 15*a**2 + 45*a**3 + a**4,
            28 + 56*a + 45*a**2 + 23*a**3 + a**4,
            19 + a**6,
        ]
        rnd = random.Random(67)
        for i in range(len(factors) - 2):
            p = factors[i] * factors[i + 1] * (a*b + 1)
            q = factors[i + 1] * factors[i + 2] * (a + b**2)
            for algorithm in (zippel_gcd, brown_gcd):
                self.assertEqual(algorithm(p, q, rnd), factors[i + 1].monic())

    def test_agreement(self):
        R = PolynomialRing(GF(65521), "xyz")
        rnd = random.Random(5)
        for _ in range(3):
            g = _random_poly(R, rnd, 4, 3) + 1
            a = g * _random_poly(R, rnd, 3, 2)
            b = g * _random_poly(R, rnd, 3, 2)
            zippel = zippel_gcd(a, b, rnd)
            brown = brown_gcd(a, b, rnd)
            self.assertEqual(zippel, brown)
            self.assertTrue(zippel.is_divisible_by(g))
            self.assertTrue(a.is_divisible_by(zippel) and b.is_divisible_by(zippel))

    def test_idempotent_and_multiplicative(self):
        R = PolynomialRing(GF(65521), "xyz")
        x,y,z = R.variables()
        a = x**2*y + 3*y*z + 7
        b = x*z**2 + y + 1
        c = x*y*z + x + 2*z**3 + 5
        rnd = random.Random(7)
        self.assertEqual(zippel_gcd(a, a, rnd), a.monic())
        self.assertEqual(zippel_gcd(a * c, b * c, rnd), c.monic() * zippel_gcd(a, b, rnd))

    def test_coprime(self):
        R = PolynomialRing(GF(65521), "xyz")
        x,y,z = R.variables()
        a = (x**2 + y*z + 1) * (x*y + z**2 + 3)
        b = (x + y + z + 5) * (x*z**3 + y**2 + 11)
        self.assertTrue(zippel_gcd(a, b, random.Random(11)).is_one())
        self.assertTrue(brown_gcd(a, b, random.Random(11)).is_one())

    def test_absent_variable(self):
        R = PolynomialRing(GF(65521), "xyz")
        x,y,z = R.variables()
        g = x**2 + y + 4
        a = g * (x*z + y*z**2 + 1)
        b = g * (x + y**2 + 9)
        self.assertEqual(zippel_gcd(a, b, random.Random(13)), g)

    def test_tiny_field(self):
        R = PolynomialRing(GF(3), "xy")
        x,y = R.variables()
        g = x*y + x + 2
        a = g * (x + y**2 + 1)
        b = g * (x**2 + y + 2)
        rnd = random.Random(17)
        for algorithm in (zippel_gcd, brown_gcd):
            result = algorithm(a, b, rnd)
            self.assertTrue(a.is_divisible_by(result) and b.is_divisible_by(result))
            self.assertEqual(result, g.monic())

    def test_tiny_extension_field(self):
        F = GF(3).extension(2, random.Random(19))
        R = PolynomialRing(F, "xy")
        x,y = R.variables()
        g = x*y + x + 1
        a = g * (x + y**2 + 1)
        b = g * (x**2 + y + 2)
        # nine elements are too few for degree bounds [2, 2], the GCD is found over GF(3^4)
        self.assertEqual(prepared_gcd_input(a, b, random.Random(19)).extension_degree, 2)
        rnd = random.Random(23)
        for algorithm in (zippel_gcd, brown_gcd, polynomial_gcd):
            result = algorithm(a, b, rnd)
            self.assertTrue(a.is_divisible_by(result) and b.is_divisible_by(result))
            self.assertEqual(result, g.monic())

    def test_interpolation_failures_are_capped(self):
        R = PolynomialRing(GF(65521), "xy")
        x,y = R.variables()
        g = x**2*y + x + y**2 + 3
        a = g * (x + y + 1)
        b = g * (x*y + 2)
        failing = mock.Mock()
        failing.evaluate.return_value = None
        with mock.patch(f"{__name__}.MAX_SPARSE_INTERPOLATION_FAILS", 3), \
             mock.patch(f"{__name__}.create_interpolation", return_value=failing):
            with self.assertRaises(SparseInterpolationExhausted):
                zippel_gcd(a, b, random.Random(29))
        self.assertEqual(failing.evaluate.call_count, 3)

    def test_not_a_field(self):
        R = PolynomialRing(ZZ, "xy")
        x,y = R.variables()
        with self.assertRaises(NotAField):
            zippel_gcd(x + y, x - y)
        with self.assertRaises(DomainMismatch):
            polynomial_gcd(x + y, PolynomialRing(GF(5), "xy").variables()[0])

class TestIntegers(unittest.TestCase):

    def test_modular(self):
        R = PolynomialRing(ZZ, "xyz")
        x,y,z = R.variables()
        g = 3*x**2*y - 5*z + 7*x*y*z**2 + 2
        a = g * (x*y + 11*z**2 - 4)
        b = g * (x**3 - 13*y*z + 6)
        self.assertEqual(modular_gcd(a, b, random.Random(19)), g)
        self.assertEqual(modular_gcd(-a, b, random.Random(19)), g)
        self.assertEqual(modular_gcd(6 * a, 4 * b, random.Random(19)), 2 * g)

    def test_linear_cofactors(self):
        R = PolynomialRing(ZZ, "xy")
        x,y = R.variables()
        g = x + y + 1
        self.assertEqual(polynomial_gcd(g * (x - 1), g * (y + 2), random.Random(41)), g)
        self.assertEqual(polynomial_gcd(-g * (x + 2*y), 3 * g * (x*y - 1), random.Random(41)), g)

    def test_contents(self):
        R = PolynomialRing(ZZ, "xy")
        x,y = R.variables()
        self.assertEqual(modular_gcd(R(12), 8*x + 4, random.Random(1)), R(4))
        self.assertEqual(modular_gcd(R.zero(), -3*x*y + 6, random.Random(1)), 3*x*y - 6)

    def test_large_coefficients(self):
        R = PolynomialRing(ZZ, "xy")
        x,y = R.variables()
        g = 123456789123456789*x**2*y + 987654321987654321*y**3 - 1
        a = g * (x + 2*y + 3)
        b = g * (x*y - 5)
        self.assertEqual(modular_gcd(a, b, random.Random(23)), g)

    def test_agrees_with_finite_field(self):
        R = PolynomialRing(ZZ, "xyz")
        rnd = random.Random(29)
        g = _random_poly(R, rnd, 3, 2) + 1
        a = g * _random_poly(R, rnd, 3, 2)
        b = g * _random_poly(R, rnd, 3, 2)
        result = modular_gcd(a, b, rnd)
        self.assertTrue(a.is_divisible_by(result) and b.is_divisible_by(result))
        F = GF(65521)
        image = zippel_gcd(a.set_coeff_ring(F), b.set_coeff_ring(F), rnd)
        self.assertEqual(result.set_coeff_ring(F).monic(), image)

    def test_rationals(self):
        R = PolynomialRing(QQ, "xy")
        x,y = R.variables()
        g = x*y + Rational(1, 2)
        a = g * (x + Rational(2, 3))
        b = g * (y - 7)
        self.assertEqual(polynomial_gcd(a, b, random.Random(31)), g)

    def test_gcd_many(self):
        R = PolynomialRing(ZZ, "xy")
        x,y = R.variables()
        g = x + y + 1
        polys = [g * (x - 1), g * (y + 2), g * (x*y + 3)]
        self.assertEqual(polynomial_gcd_many(polys, random.Random(37)), g)
        self.assertEqual(polynomial_gcd_many([-2 * g]), 2 * g)

class TestSkeleton(unittest.TestCase):

    def test_divide_skeleton(self):
        R = PolynomialRing(GF(101), "xy")
        x,y = R.variables()
        self.assertEqual(divide_skeleton_exact(3*x**2*y + 5*x*y, x*y), x + 1)
        self.assertIsNone(divide_skeleton_exact(x**2 + y, x*y))
        self.assertEqual(divide_skeleton_exact((x + y) * (x - 1), x + y).skeleton(), (x + 1).skeleton())
