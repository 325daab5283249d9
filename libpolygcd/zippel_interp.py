#!/usr/bin/env python3
#
#   Zippel Interpolation Algorithm
#

import logging
from typing import Dict, List, Optional, Tuple

from libpolygcd.basic_types import Polynomial, PolynomialRing
from libpolygcd.linalg import SystemInfo, solve
from libpolygcd.univariate_gcd import polynomial_gcd as univariate_gcd
from libpolygcd.vandermonde import solve_shifted_transposed_vandermonde

logger = logging.getLogger(__name__)

# Attempts at choosing an evaluation point that keeps the supports intact
MAX_FAILED_SUBSTITUTIONS = 32
# LinZip retries while the system stays under-determined before giving up on the homomorphism
NUMBER_OF_UNDER_DETERMINED_RETRIES = 8
# Systems with at most this many unknowns are solved by Gaussian elimination, larger ones as Vandermonde systems
MAX_VANDERMONDE_GAUSS_SIZE = 8

class PrecomputedPowers:
    """
    Caches powers of the coordinates of an evaluation point
    """

    def __init__(self, ring, point):
        self.ring = ring
        self.point = list(point)
        self.cache = [{} for _ in self.point]

    def set(self, i, value):
        self.point[i] = value
        self.cache[i] = {}

    def pow(self, i, exponent):
        cache = self.cache[i]
        value = cache.get(exponent)
        if value is None:
            value = self.ring.pow(self.point[i], exponent)
            cache[exponent] = value
        return value

def evaluate_except_first(ring, powers : PrecomputedPowers, coefficient, monomial, raise_factor : int, n_vars : int):
    """
    coefficient * prod_k point[k]^(raise_factor * monomial[k + 1]) over the first n_vars coordinates
    """
    tmp = coefficient
    for k in range(n_vars):
        tmp = ring.mul(tmp, powers.pow(k, raise_factor * monomial[1 + k]))
    return tmp

def get_skeleton(poly : Polynomial) -> Dict[int, List[Tuple[int, ...]]]:
    """
    View poly in K[x_1, ..., x_N][x_0] and return the map from the exponent of x_0 to the monomials of its
    coefficient (with the x_0 exponent zeroed), leading monomial first.
    """
    skeleton = {}
    for m in poly.monomials:
        skeleton.setdefault(m[0], []).append((0,) + m[1:])
    return skeleton

def _x0_support(poly : Polynomial):
    return {m[0] for m in poly.terms}

########################################################################################################################
#   Linear Systems
########################################################################################################################

class LinearSystem:
    """
    Equations for the coefficients of one stratum of the skeleton. Row i evaluates the stratum's monomials at the
    (i + 1)-th power of the evaluation point.
    """

    def __init__(self, ring, univar_degree : int, skeleton : List[Tuple[int, ...]], powers : PrecomputedPowers,
                 n_vars : int):
        self.ring = ring
        self.univar_degree = univar_degree
        self.skeleton = skeleton
        self.powers = powers
        # number of substituted variables
        self.n_vars = n_vars
        self.matrix = []
        self.rhs = []

    def n_unknowns(self):
        return len(self.skeleton)

    def n_equations(self):
        return len(self.matrix)

    def _next_row(self):
        ring = self.ring
        return [evaluate_except_first(ring, self.powers, ring.one, m, len(self.matrix) + 1, self.n_vars)
                for m in self.skeleton]

    def __str__(self):
        return "{" + ",".join(str(row) for row in self.matrix) + "} = " + str(self.rhs)

class VandermondeSystem(LinearSystem):

    def __init__(self, *args):
        super().__init__(*args)
        self.solution = None

    def one_more_equation(self, rhs_val):
        self.matrix.append(self._next_row())
        self.rhs.append(rhs_val)
        return self

    def solve(self):
        if self.n_unknowns() <= MAX_VANDERMONDE_GAUSS_SIZE:
            # Gaussian elimination is faster for small systems
            info, self.solution = solve(self.ring, self.matrix, self.rhs)
        else:
            info, self.solution = solve_shifted_transposed_vandermonde(self.ring, self.matrix[0], self.rhs)
        return info

class LinZipSystem(LinearSystem):

    def __init__(self, *args):
        super().__init__(*args)
        # coefficient of the scaling unknown introduced with each equation after the first
        self.scaling_matrix = []

    def one_more_equation(self, rhs_val, new_scaling_introduced : bool):
        self.matrix.append(self._next_row())
        if new_scaling_introduced:
            self.scaling_matrix.append(self.ring.neg(rhs_val))
            rhs_val = self.ring.zero
        else:
            self.scaling_matrix.append(self.ring.zero)
        self.rhs.append(rhs_val)

def solve_linzip(ring : PolynomialRing, systems : List[LinZipSystem], n_unknown_scalings : int):
    """
    Merges the per-stratum systems into one system sharing the scaling unknowns and solves it.
    Returns (SystemInfo, polynomial or None).
    """
    cr = ring.coeff_ring
    unknowns = [(system.univar_degree,) + m[1:] for system in systems for m in system.skeleton]

    n_unknown_monomials = len(unknowns)
    n_unknowns_total = n_unknown_monomials + n_unknown_scalings
    lhs = []
    rhs = []
    offset = 0
    for system in systems:
        for j,sub_row in enumerate(system.matrix):
            row = [cr.zero] * n_unknowns_total
            row[offset:offset + len(sub_row)] = sub_row
            if j > 0:
                row[n_unknown_monomials + j - 1] = system.scaling_matrix[j]
            lhs.append(row)
            rhs.append(system.rhs[j])
        offset += len(system.skeleton)

    info, solution = solve(cr, lhs, rhs)
    if info != SystemInfo.Consistent:
        return info, None
    return info, Polynomial(ring, zip(unknowns, solution[:n_unknown_monomials]))

########################################################################################################################
#   Sparse Interpolation
########################################################################################################################

class TrivialSparseInterpolation:
    """
    Single term skeleton, every image is the skeleton itself up to scaling
    """

    def __init__(self, value : Polynomial):
        self.value = value

    def evaluate(self, new_point=None):
        return self.value

class SparseInterpolation:
    """
    Interpolates the GCD of a and b at variable = new_point from a known skeleton. Variables 1..variable-1 are
    replaced by successive powers of a fixed random point, which turns the unknown coefficients of each stratum into
    a transposed Vandermonde system. With variable = -1 all variables but x_0 are raised.
    """

    def __init__(self, variable : int, a : Polynomial, b : Polynomial, global_skeleton,
                 univar_skeleton : Dict[int, List], evaluation_variables : List[int], evaluation_point : List,
                 powers : PrecomputedPowers, rnd):
        self.ring = a.ring
        self.cr = a.ring.coeff_ring
        self.variable = variable
        self.a = a
        self.b = b
        self.a_degree = a.degree(0)
        self.b_degree = b.degree(0)
        self.global_skeleton = global_skeleton
        self.univar_skeleton = univar_skeleton
        self.sparse_univar_degrees = sorted(univar_skeleton)
        self.evaluation_variables = evaluation_variables
        self.evaluation_point = evaluation_point
        self.powers = powers
        self.rnd = rnd
        # number of variables that get raised to successive powers
        self.n_vars = self.ring.n_vars - 1 if variable == -1 else variable - 1

    def evaluate(self, new_point=None):
        """
        The GCD image, or None if the homomorphism is unlucky
        """
        if new_point is not None:
            # variable = new_point
            self.evaluation_point[-1] = new_point
            self.powers.set(len(self.evaluation_point) - 1, new_point)
        return self._evaluate()

    def _raise_factors(self, raise_factor : int):
        raise_factors = [raise_factor] * len(self.evaluation_variables)
        if self.variable != -1:
            # the last variable (the variable) is the same for all evaluations = new_point
            raise_factors[-1] = 1
        return raise_factors

    def _univariate_gcd(self, raise_factor : int):
        raise_factors = self._raise_factors(raise_factor)
        a_univar = self.a.evaluate_powers(self.powers, self.evaluation_variables, raise_factors).as_univariate(0)
        b_univar = self.b.evaluate_powers(self.powers, self.evaluation_variables, raise_factors).as_univariate(0)

        if self.a_degree != a_univar.degree() or self.b_degree != b_univar.degree():
            # unlucky main homomorphism or bad evaluation point
            return None

        gcd_univar = univariate_gcd(a_univar, b_univar)
        if any(not self.cr.is_zero(c) and d not in self.univar_skeleton for d,c in enumerate(gcd_univar.coeffs)):
            # univariate gcd contains terms that are not present in the skeleton
            return None
        return gcd_univar

    def _evaluate(self):
        raise NotImplementedError()

class MonicInterpolation(SparseInterpolation):
    """
    The leading coefficient is known up to a single scaling: either both inputs are monic in x_0 or one stratum of
    the skeleton consists of a single monomial. Each stratum is then solved independently.
    """

    def __init__(self, *args, required_number_of_evaluations : int, monic_scaling_exponent : Optional[int]):
        super().__init__(*args)
        self.required_number_of_evaluations = required_number_of_evaluations
        self.monic_scaling_exponent = monic_scaling_exponent

    def _evaluate(self):
        cr = self.cr
        systems = [VandermondeSystem(cr, d, self.univar_skeleton[d], self.powers, self.n_vars)
                   for d in self.sparse_univar_degrees]

        for i in range(self.required_number_of_evaluations):
            gcd_univar = self._univariate_gcd(i + 1)
            if gcd_univar is None:
                return None

            if self.monic_scaling_exponent is not None:
                # normalize the univariate gcd by the single-term stratum
                c = gcd_univar[self.monic_scaling_exponent]
                if cr.is_zero(c):
                    return None
                normalization = evaluate_except_first(cr, self.powers, cr.one,
                                                      self.univar_skeleton[self.monic_scaling_exponent][0],
                                                      i + 1, self.n_vars)
                gcd_univar = gcd_univar.scale(cr.mul(cr.reciprocal(c), normalization))

            all_done = True
            for system in systems:
                if system.n_equations() < system.n_unknowns():
                    system.one_more_equation(gcd_univar[system.univar_degree])
                    all_done = False

            if all_done:
                break

        for system in systems:
            if system.solve() != SystemInfo.Consistent:
                # inconsistent or under-determined, unlucky homomorphism
                return None

        terms = []
        for system in systems:
            for m,value in zip(system.skeleton, system.solution):
                terms.append(((system.univar_degree,) + m[1:], value))
        return Polynomial(self.ring, terms)

class LinZipInterpolation(SparseInterpolation):
    """
    Nothing is known about the leading coefficient. Each evaluation after the first introduces an unknown scaling
    factor and all strata are solved as one system.
    """

    def _evaluate(self):
        cr = self.cr
        systems = [LinZipSystem(cr, d, self.univar_skeleton[d], self.powers, self.n_vars)
                   for d in self.sparse_univar_degrees]

        n_unknowns = len(self.global_skeleton)
        n_unknown_scalings = -1
        raise_factor = 0

        for _ in range(NUMBER_OF_UNDER_DETERMINED_RETRIES):
            previous_free_vars = -1
            under_determined_tries = 0
            while True:
                n_unknown_scalings += 1
                raise_factor += 1

                gcd_univar = self._univariate_gcd(raise_factor)
                if gcd_univar is None:
                    return None

                total_equations = 0
                for system in systems:
                    system.one_more_equation(gcd_univar[system.univar_degree], n_unknown_scalings != 0)
                    total_equations += system.n_equations()
                if n_unknowns + n_unknown_scalings <= total_equations:
                    break

                if under_determined_tries > NUMBER_OF_UNDER_DETERMINED_RETRIES:
                    # new equations do not fix enough unknowns
                    return None

                free_vars = n_unknowns + n_unknown_scalings - total_equations
                if free_vars >= previous_free_vars:
                    under_determined_tries += 1
                else:
                    under_determined_tries = 0
                previous_free_vars = free_vars

            info, result = solve_linzip(self.ring, systems, n_unknown_scalings)
            if info == SystemInfo.UnderDetermined:
                # try to generate more equations
                continue
            if info == SystemInfo.Consistent:
                return result
            # inconsistent system, unlucky homomorphism
            return None

        # still under-determined, bad evaluation homomorphism
        logger.debug("LinZip system still under-determined after %d retries", NUMBER_OF_UNDER_DETERMINED_RETRIES)
        return None

def create_interpolation(variable : int, a : Polynomial, b : Polynomial, skeleton : Polynomial, rnd):
    """
    Sets up sparse interpolation of gcd(a, b) in `variable` using the support of `skeleton`. With variable = -1
    every variable except x_0 is interpolated at once. Returns None if no good evaluation point was found.
    """
    skeleton = skeleton.set_all_coefficients_to_unit()
    if len(skeleton) == 1:
        return TrivialSparseInterpolation(skeleton)

    ring = a.ring
    cr = ring.coeff_ring
    monic = a.coefficient_of(0, a.degree(0)).is_constant() and b.coefficient_of(0, b.degree(0)).is_constant()
    global_skeleton = skeleton.skeleton()
    univar_skeleton = get_skeleton(skeleton)

    last_variable = ring.n_vars - 1 if variable == -1 else variable
    # variable inclusive
    evaluation_variables = list(range(1, last_variable + 1))
    raise_factors = [1] * len(evaluation_variables)

    for _ in range(MAX_FAILED_SUBSTITUTIONS):
        # avoid zero evaluation points
        evaluation_point = [cr.rand_elem_distinct([cr.zero], rnd) for _ in evaluation_variables]
        powers = PrecomputedPowers(cr, evaluation_point)
        if all(_x0_support(p) == _x0_support(p.evaluate_powers(powers, evaluation_variables, raise_factors))
               for p in (a, b, skeleton)):
            break
    else:
        logger.debug("no evaluation point preserving the supports after %d attempts", MAX_FAILED_SUBSTITUTIONS)
        return None

    required_number_of_evaluations = max(len(v) for v in univar_skeleton.values())
    single_term_strata = [d for d,v in univar_skeleton.items() if len(v) == 1]
    monic_scaling_exponent = None if monic or not single_term_strata else max(single_term_strata)

    args = (variable, a, b, global_skeleton, univar_skeleton, evaluation_variables, evaluation_point, powers, rnd)
    if monic or monic_scaling_exponent is not None:
        return MonicInterpolation(*args, required_number_of_evaluations=required_number_of_evaluations,
                                  monic_scaling_exponent=monic_scaling_exponent)
    return LinZipInterpolation(*args)

########################################################################################################################
#   Unit Tests
########################################################################################################################

import random
import unittest
from unittest import mock

from libpolygcd.basic_types import GF

class TestSparseInterpolation(unittest.TestCase):

    def setUp(self):
        self.R = PolynomialRing(GF(65521), "xyz")
        self.rnd = random.Random(23)

    def check(self, gcd, cofactor_a, cofactor_b, kind):
        a = gcd * cofactor_a
        b = gcd * cofactor_b
        point = 12345
        skeleton = gcd.evaluate(2, point)
        interp = create_interpolation(2, a, b, skeleton, self.rnd)
        self.assertIsInstance(interp, kind)
        new_point = 777
        image = interp.evaluate(new_point)
        expected = gcd.evaluate(2, new_point)
        self.assertEqual(image.monic(), expected.monic())

    def test_monic(self):
        x,y,z = self.R.variables()
        self.check(x**3 + x*y*z + y**2 + z + 1, x**2 + y*z + 3, x*y + z**2 + 5, MonicInterpolation)

    def test_single_term_stratum(self):
        x,y,z = self.R.variables()
        self.check(y*x**2 + x*(y + z) + y**2*z + 4, x + y + 2, x*z + y*y + 1, MonicInterpolation)

    def test_linzip(self):
        x,y,z = self.R.variables()
        self.check((y + z + 1)*x**2 + x*(y*z + 2) + y**2 + 3*z, x*y + 1, x*z + y + 7, LinZipInterpolation)

    def test_trivial(self):
        x,y,z = self.R.variables()
        a = x**2*y*z + 1
        interp = create_interpolation(2, a, a, self.R(3) * x**2, self.rnd)
        self.assertIsInstance(interp, TrivialSparseInterpolation)
        self.assertEqual(interp.evaluate(5), x**2)

    def test_skeleton(self):
        x,y,z = self.R.variables()
        skeleton = get_skeleton(x**2*y + x**2*z + y*z + 3)
        self.assertEqual(set(skeleton), {2, 0})
        self.assertEqual(sorted(skeleton[2]), [(0, 0, 1), (0, 1, 0)])
        self.assertEqual(sorted(skeleton[0]), [(0, 0, 0), (0, 1, 1)])

    def test_large_stratum(self):
        x,y,z = self.R.variables()
        # the x stratum has ten monomials, too many for Gaussian elimination
        gcd = x**3 + x * sum((i + 1) * y**i * z**(i % 2) for i in range(10)) + y + z
        self.assertGreater(max(len(v) for v in get_skeleton(gcd.evaluate(2, 12345)).values()),
                           MAX_VANDERMONDE_GAUSS_SIZE)
        self.check(gcd, x**2 + y*z + 3, x + y + z**2 + 5, MonicInterpolation)

    def test_no_support_preserving_point(self):
        R = PolynomialRing(GF(2), "xy")
        x,y = R.variables()
        # y = 1 is the only nonzero point and it cancels the x term of a
        interp = create_interpolation(1, x*y + x + 1, x + 1, x*y + 1, self.rnd)
        self.assertIsNone(interp)

    def test_wrong_skeleton(self):
        x,y,z = self.R.variables()
        g = x**2 + x*y + z
        interp = create_interpolation(2, g * (x + 1), g * (x + 2), x**2 + y, self.rnd)
        self.assertIsInstance(interp, MonicInterpolation)
        self.assertIsNone(interp.evaluate(777))

    def test_linzip_retries(self):
        x,y,z = self.R.variables()
        gcd = (y + z + 1)*x**2 + x*(y*z + 2) + y**2 + 3*z
        a = gcd * (x*y + 1)
        b = gcd * (x*z + y + 7)
        interp = create_interpolation(2, a, b, gcd.evaluate(2, 12345), self.rnd)
        self.assertIsInstance(interp, LinZipInterpolation)
        with mock.patch(f"{__name__}.solve_linzip", return_value=(SystemInfo.UnderDetermined, None)) as solver:
            self.assertIsNone(interp.evaluate(777))
        self.assertEqual(solver.call_count, NUMBER_OF_UNDER_DETERMINED_RETRIES)
