#!/usr/bin/env python3
#
#   Dense univariate polynomials over a coefficient ring
#

from typing import List

from libpolygcd.errors import DomainMismatch, NotDivisible

class UnivariatePolynomial:
    """
    Dense univariate polynomial, coeffs[i] is the coefficient of x^i. Trailing zeros are stripped so the zero
    polynomial has no coefficients and degree -1.
    """

    def __init__(self, ring, coeffs : List, convert : bool = False):
        self.ring = ring
        if convert:
            coeffs = [ring(c) for c in coeffs]
        else:
            coeffs = list(coeffs)
        while len(coeffs) != 0 and ring.is_zero(coeffs[-1]):
            coeffs.pop()
        self.coeffs = coeffs

    @staticmethod
    def X(ring, power : int = 1):
        return UnivariatePolynomial(ring, [ring.zero] * power + [ring.one])

    @staticmethod
    def constant(ring, c):
        return UnivariatePolynomial(ring, [ring(c)])

    @staticmethod
    def linear(ring, root):
        """
        The polynomial x - root
        """
        return UnivariatePolynomial(ring, [ring.neg(root), ring.one])

    def _check(self, other):
        if isinstance(other, UnivariatePolynomial):
            if other.ring != self.ring:
                raise DomainMismatch(f"{self.ring} and {other.ring} differ")
            return other
        return UnivariatePolynomial(self.ring, [self.ring(other)])

    def degree(self) -> int:
        return len(self.coeffs) - 1

    def lc(self):
        return self.coeffs[-1] if self.coeffs else self.ring.zero

    def is_zero(self):
        return len(self.coeffs) == 0

    def is_constant(self):
        return len(self.coeffs) <= 1

    def is_one(self):
        return len(self.coeffs) == 1 and self.ring.is_one(self.coeffs[0])

    def __getitem__(self, i):
        if 0 <= i < len(self.coeffs):
            return self.coeffs[i]
        return self.ring.zero

    def __eq__(self, other):
        if other is None:
            return False
        if not isinstance(other, UnivariatePolynomial):
            other = self._check(other)
        return self.ring == other.ring and self.coeffs == other.coeffs

    def __hash__(self):
        return hash(tuple(self.coeffs))

    def __str__(self):
        if self.is_zero():
            return "0"
        terms = []
        for i in range(len(self.coeffs) - 1, -1, -1):
            c = self.coeffs[i]
            if self.ring.is_zero(c):
                continue
            if i == 0:
                terms.append(f"{c}")
            elif self.ring.is_one(c):
                terms.append("x" if i == 1 else f"x^{i}")
            else:
                terms.append(f"{c}*x" if i == 1 else f"{c}*x^{i}")
        return " + ".join(terms)

    def __repr__(self):
        return f"UnivariatePolynomial({repr(self.ring)}, {self.coeffs})"

    def __add__(self, other):
        other = self._check(other)
        ring = self.ring
        n = max(len(self.coeffs), len(other.coeffs))
        return UnivariatePolynomial(ring, [ring.add(self[i], other[i]) for i in range(n)])

    def __radd__(self, other):
        return self.__add__(other)

    def __neg__(self):
        return UnivariatePolynomial(self.ring, [self.ring.neg(c) for c in self.coeffs])

    def __sub__(self, other):
        other = self._check(other)
        ring = self.ring
        n = max(len(self.coeffs), len(other.coeffs))
        return UnivariatePolynomial(ring, [ring.sub(self[i], other[i]) for i in range(n)])

    def __rsub__(self, other):
        return self._check(other) - self

    def scale(self, c):
        return UnivariatePolynomial(self.ring, [self.ring.mul(a, c) for a in self.coeffs])

    def __mul__(self, other):
        if not isinstance(other, UnivariatePolynomial):
            return self.scale(self.ring(other))
        other = self._check(other)
        if self.is_zero() or other.is_zero():
            return UnivariatePolynomial(self.ring, [])
        ring = self.ring
        result = [ring.zero] * (len(self.coeffs) + len(other.coeffs) - 1)
        for i,a in enumerate(self.coeffs):
            if ring.is_zero(a):
                continue
            for j,b in enumerate(other.coeffs):
                result[i + j] = ring.add(result[i + j], ring.mul(a, b))
        return UnivariatePolynomial(ring, result)

    def __rmul__(self, other):
        return self * other

    def __pow__(self, power : int):
        assert power >= 0
        result = UnivariatePolynomial(self.ring, [self.ring.one])
        base = self
        while power:
            if power & 1:
                result = result * base
            power >>= 1
            if power:
                base = base * base
        return result

    def shift(self, n : int):
        """
        self * x^n
        """
        if self.is_zero():
            return self
        return UnivariatePolynomial(self.ring, [self.ring.zero] * n + self.coeffs)

    def _divide(self, other, exact_only):
        # Long division where each quotient coefficient must be an exact division in the coefficient ring
        if other.is_zero():
            raise ZeroDivisionError
        ring = self.ring
        rem = list(self.coeffs)
        d = other.degree()
        lc = other.lc()
        if len(rem) - 1 < d:
            return UnivariatePolynomial(ring, []), self
        quot = [ring.zero] * (len(rem) - d)
        for i in range(len(rem) - 1, d - 1, -1):
            if ring.is_zero(rem[i]):
                continue
            q = ring.divide_or_none(rem[i], lc)
            if q is None:
                if exact_only:
                    return None, None
                raise NotDivisible(f"leading coefficient {lc} does not divide {rem[i]}")
            quot[i - d] = q
            for j,c in enumerate(other.coeffs):
                rem[i - d + j] = ring.sub(rem[i - d + j], ring.mul(q, c))
        return UnivariatePolynomial(ring, quot), UnivariatePolynomial(ring, rem[:d])

    def divmod(self, other):
        """
        Quotient and remainder. Over rings that are not fields the leading coefficient of `other` must divide
        every step, otherwise NotDivisible is raised.
        """
        return self._divide(self._check(other), False)

    def __floordiv__(self, other):
        return self.divmod(other)[0]

    def __mod__(self, other):
        return self.divmod(other)[1]

    def divide_or_none(self, other):
        q, r = self._divide(self._check(other), True)
        if q is None or not r.is_zero():
            return None
        return q

    def divide_exact(self, other):
        q = self.divide_or_none(other)
        if q is None:
            raise NotDivisible(f"{self} is not divisible by {other}")
        return q

    def pseudo_divmod(self, other):
        """
        q, r with lc(other)^(deg(self) - deg(other) + 1) * self = q * other + r
        """
        other = self._check(other)
        if other.is_zero():
            raise ZeroDivisionError
        ring = self.ring
        d = other.degree()
        if self.degree() < d:
            return UnivariatePolynomial(ring, []), self
        lc = other.lc()
        rem = list(self.coeffs)
        quot = [ring.zero] * (len(rem) - d)
        for i in range(len(rem) - 1, d - 1, -1):
            # multiply everything by lc, then cancel the top coefficient
            t = rem[i]
            quot = [ring.mul(c, lc) for c in quot]
            quot[i - d] = ring.add(quot[i - d], t)
            rem = [ring.mul(c, lc) for c in rem]
            for j,c in enumerate(other.coeffs):
                rem[i - d + j] = ring.sub(rem[i - d + j], ring.mul(t, c))
        return UnivariatePolynomial(ring, quot), UnivariatePolynomial(ring, rem[:d])

    def pseudo_remainder(self, other):
        return self.pseudo_divmod(other)[1]

    def monic(self):
        if self.is_zero():
            return self
        return self.scale(self.ring.reciprocal(self.lc()))

    def content(self):
        ring = self.ring
        if self.is_zero():
            return ring.zero
        if ring.is_field():
            return ring.one
        c = ring.zero
        for a in self.coeffs:
            c = ring.gcd(c, a)
            if ring.is_one(c):
                break
        return c

    def primitive_part(self):
        """
        Over Z: content removed and positive leading coefficient. Over a field: monic.
        """
        if self.is_zero():
            return self
        ring = self.ring
        if ring.is_field():
            return self.monic()
        c = self.content()
        if self.lc() < 0:
            c = -c
        return UnivariatePolynomial(ring, [ring.divide_exact(a, c) for a in self.coeffs])

    def evaluate(self, x):
        ring = self.ring
        result = ring.zero
        for c in reversed(self.coeffs):
            result = ring.add(ring.mul(result, x), c)
        return result

    def __call__(self, x):
        return self.evaluate(self.ring(x))

    def derivative(self):
        ring = self.ring
        return UnivariatePolynomial(ring, [ring.mul(ring(i), c) for i,c in enumerate(self.coeffs) if i != 0])

    def powmod(self, n : int, modulus):
        """
        self^n mod modulus
        """
        result = UnivariatePolynomial(self.ring, [self.ring.one]) % modulus
        base = self % modulus
        while n:
            if n & 1:
                result = (result * base) % modulus
            n >>= 1
            if n:
                base = (base * base) % modulus
        return result

    def set_coeff_ring(self, ring):
        return UnivariatePolynomial(ring, self.coeffs, convert=True)

########################################################################################################################
#   Unit Tests
########################################################################################################################

import unittest

from libpolygcd.basic_types import GF, QQ, ZZ, Rational

class TestUnivariate(unittest.TestCase):

    def test_arithmetic(self):
        F = GF(7)
        p = UnivariatePolynomial(F, [1, 1])
        q = UnivariatePolynomial(F, [6, 1])
        self.assertEqual((p * q).coeffs, [6, 0, 1])
        self.assertEqual((p + q).coeffs, [0, 2])
        self.assertEqual((p - p).degree(), -1)
        self.assertEqual((p**7).coeffs, [1, 0, 0, 0, 0, 0, 0, 1])
        self.assertEqual(UnivariatePolynomial.X(F, 3).degree(), 3)
        self.assertFalse(p == None)
        self.assertNotEqual(p, None)

    def test_division(self):
        F = GF(67)
        a = UnivariatePolynomial(F, [3, 0, 5, 1, 9], convert=True)
        b = UnivariatePolynomial(F, [2, 7, 1], convert=True)
        q, r = a.divmod(b)
        self.assertEqual(q * b + r, a)
        self.assertLess(r.degree(), b.degree())
        self.assertEqual((a * b).divide_exact(b), a)
        self.assertIsNone((a * b + 1).divide_or_none(b))

    def test_integer_division(self):
        a = UnivariatePolynomial(ZZ, [-2, 0, 2])
        b = UnivariatePolynomial(ZZ, [1, 1])
        self.assertEqual(a.divide_exact(b).coeffs, [-2, 2])
        self.assertIsNone(a.divide_or_none(UnivariatePolynomial(ZZ, [1, 3])))
        with self.assertRaises(NotDivisible):
            a.divmod(UnivariatePolynomial(ZZ, [1, 3]))

    def test_pseudo_division(self):
        a = UnivariatePolynomial(ZZ, [1, 2, 3, 4])
        b = UnivariatePolynomial(ZZ, [5, 0, 3])
        q, r = a.pseudo_divmod(b)
        self.assertEqual(a * (3**2), q * b + r)
        self.assertLess(r.degree(), b.degree())

    def test_content(self):
        a = UnivariatePolynomial(ZZ, [6, -4, -10])
        self.assertEqual(a.content(), 2)
        self.assertEqual(a.primitive_part().coeffs, [-3, 2, 5])
        b = UnivariatePolynomial(QQ, [Rational(1, 2), Rational(3, 1)])
        self.assertEqual(b.monic().coeffs, [Rational(1, 6), Rational(1, 1)])

    def test_evaluation(self):
        F = GF(101)
        a = UnivariatePolynomial(F, [1, 2, 3])
        self.assertEqual(a(2), 17)
        self.assertEqual(a.derivative().coeffs, [2, 6])
        m = UnivariatePolynomial(F, [3, 0, 1])
        x = UnivariatePolynomial.X(F)
        # x^2 = -3 mod m, so x^4 = 9
        self.assertEqual(x.powmod(4, m).coeffs, [9])
