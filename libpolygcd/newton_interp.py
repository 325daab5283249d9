#!/usr/bin/env python3
#
#   Dense Newton interpolation in one variable with multivariate coefficients
#

from typing import List

from libpolygcd.basic_types import Polynomial
from libpolygcd.univariate import UnivariatePolynomial

class Interpolation:
    """
    Incremental Newton interpolation of a polynomial in `variable` from its images at distinct points. The images
    are polynomials in the remaining variables, `variable` itself must be absent from them.
    """

    def __init__(self, variable : int, point, value : Polynomial):
        self.variable = variable
        self.ring = value.ring
        cr = self.ring.coeff_ring
        self.points = [point]
        self.values = [value]
        # product of (x - x_i) over the points so far
        self.lins = UnivariatePolynomial.linear(cr, point)
        self.poly = value

    def update(self, point, value : Polynomial) -> bool:
        """
        Adds one more sample, returns whether the interpolant changed
        """
        cr = self.ring.coeff_ring
        assert point not in self.points , "Interpolation points must be distinct"

        diff = value - self.poly.evaluate(self.variable, point)
        self.points.append(point)
        self.values.append(value)

        changed = not diff.is_zero()
        if changed:
            # poly += (value - poly(point)) / lins(point) * lins
            factor = cr.reciprocal(self.lins.evaluate(point))
            self.poly = self.poly + diff.scale(factor).multiply_by_univariate(self.lins, self.variable)
        self.lins = self.lins * UnivariatePolynomial.linear(cr, point)
        return changed

    def number_of_points(self) -> int:
        return len(self.points)

    def get_interpolating_polynomial(self):
        return self.poly

def interpolate(variable : int, points : List, values : List[Polynomial]) -> Polynomial:
    interp = Interpolation(variable, points[0], values[0])
    for point,value in zip(points[1:], values[1:]):
        interp.update(point, value)
    return interp.poly

########################################################################################################################
#   Unit Tests
########################################################################################################################

import random
import unittest

from libpolygcd.basic_types import GF, QQ, PolynomialRing, Rational

class TestNewton(unittest.TestCase):

    def test_recover(self):
        R = PolynomialRing(GF(65521), "xyz")
        x,y,z = R.variables()
        target = x**3*y**2 + 12*x*z - 4*z**2 + 17*y + y**4*z
        rnd = random.Random(13)
        points = []
        while len(points) < 5:
            points.append(R.coeff_ring.rand_elem_distinct(points, rnd))
        values = [target.evaluate(1, pt) for pt in points]
        self.assertEqual(interpolate(1, points, values), target)

    def test_stabilises(self):
        R = PolynomialRing(QQ, "xy")
        x,y = R.variables()
        target = (x + 2) * (y + 3) * (x * y + 12)
        points = [QQ(i) for i in range(1, 6)]
        interp = Interpolation(1, points[0], target.evaluate(1, points[0]))
        changes = [interp.update(pt, target.evaluate(1, pt)) for pt in points[1:]]
        # degree 2 in y is fixed by three points, later samples agree
        self.assertEqual(changes, [True, True, False, False])
        self.assertEqual(interp.poly, target)
        self.assertEqual(interp.number_of_points(), 5)
        self.assertEqual(interp.poly.evaluate(1, Rational(1, 2)), target.evaluate(1, Rational(1, 2)))
