#!/usr/bin/env python3
#
#   Finite field extensions GF(p^k) = GF(p)[t] / (m(t))
#

from libpolygcd.basic_types import GF, CoefficientRing, Rational
from libpolygcd.errors import EvaluationStackExhausted, NotInvertible
from libpolygcd.linalg import SystemInfo, solve
from libpolygcd.rng import resolve
from libpolygcd.univariate import UnivariatePolynomial
from libpolygcd.univariate_gcd import extended_euclid, gcd_field

# Random monic polynomials drawn while looking for an irreducible one, roughly 1 in k of degree k is irreducible
MAX_IRREDUCIBLE_ATTEMPTS = 1 << 10
# Random shifts tried while splitting a polynomial into linear factors, each one splits with probability about 1/2
MAX_SPLITTING_ATTEMPTS = 1 << 10

def is_irreducible(f : UnivariatePolynomial) -> bool:
    """
    Ben-Or's test: f of degree n over GF(p) is irreducible iff gcd(f, x^(p^i) - x) = 1 for all i <= n/2
    """
    n = f.degree()
    if n <= 0:
        return False
    if n == 1:
        return True
    f = f.monic()
    p = f.ring.size()
    x = UnivariatePolynomial.X(f.ring)
    xp = x
    for _ in range(n // 2):
        xp = xp.powmod(p, f)
        if not gcd_field(f, xp - x).is_one():
            return False
    return True

def random_irreducible(base : GF, degree : int, rnd=None) -> UnivariatePolynomial:
    """
    A random monic irreducible polynomial of the given degree over GF(p)
    """
    rnd = resolve(rnd)
    for _ in range(MAX_IRREDUCIBLE_ATTEMPTS):
        coeffs = [base.rand_elem(rnd) for _ in range(degree)] + [base.one]
        f = UnivariatePolynomial(base, coeffs)
        if is_irreducible(f):
            return f
    raise EvaluationStackExhausted(f"no irreducible polynomial of degree {degree} over {base} found")

def find_root(f : UnivariatePolynomial, field, rnd=None):
    """
    A root in `field` of the GF(p) polynomial f, which must split into distinct linear factors over `field`.
    Cantor-Zassenhaus: gcd with (x + d)^((q-1)/2) - 1, or with the trace of x + d in characteristic 2, splits f
    for about half of the shifts d.
    """
    rnd = resolve(rnd)
    g = f.set_coeff_ring(field).monic()
    half_order = (field.size() - 1) // 2
    for _ in range(MAX_SPLITTING_ATTEMPTS):
        if g.degree() == 1:
            return field.neg(g[0])
        shifted = UnivariatePolynomial.linear(field, field.neg(field.rand_elem(rnd)))
        if field.characteristic() == 2:
            h = shifted % g
            term = h
            for _ in range(field.degree - 1):
                term = (term * term) % g
                h = h + term
        else:
            h = shifted.powmod(half_order, g) - UnivariatePolynomial.constant(field, field.one)
        d = gcd_field(g, h)
        if 0 < d.degree() < g.degree():
            g = d if 2 * d.degree() <= g.degree() else g.divide_exact(d)
    raise EvaluationStackExhausted(f"{f} could not be split over {repr(field)}")

class ExtensionField(CoefficientRing):
    """
    Elements are tuples of coefficients in GF(p), lowest power of t first, trailing zeros stripped. Elements of
    the prime field are the tuples of length at most 1.

    `subfield` is the field this one extends: GF(p) itself, or a smaller extension whose generator t is sent to
    `generator`.
    """

    zero = ()
    one = (1,)

    def __init__(self, base : GF, modulus : UnivariatePolynomial, subfield=None, generator=None):
        assert modulus.degree() >= 2 , "Extension degree must be at least 2"
        self.base = base
        self.p = base.p
        self.modulus = modulus.monic()
        self.degree = self.modulus.degree()
        self.inverses = {}
        self.subfield = base if subfield is None else subfield
        self.generator = generator
        # coordinates of the powers of the generator, one row per coefficient of t
        self.subfield_rows = None

    def __repr__(self):
        return f"GF({self.p}^{self.degree})"

    def __str__(self):
        return f"GF({self.p}^{self.degree}) = {self.base}[t] / ({self.modulus})"

    def __eq__(self, other):
        if isinstance(other, ExtensionField):
            return self.base == other.base and self.modulus == other.modulus
        return False

    def __hash__(self):
        return hash((self.base, tuple(self.modulus.coeffs)))

    @staticmethod
    def _strip(coeffs):
        n = len(coeffs)
        while n != 0 and coeffs[n - 1] == 0:
            n -= 1
        return tuple(coeffs[:n])

    def _reduce(self, coeffs):
        # reduce a coefficient list modulo the monic modulus
        p = self.p
        k = self.degree
        m = self.modulus.coeffs
        coeffs = [c % p for c in coeffs]
        for i in range(len(coeffs) - 1, k - 1, -1):
            c = coeffs[i]
            if c == 0:
                continue
            for j in range(k):
                coeffs[i - k + j] = (coeffs[i - k + j] - c * m[j]) % p
            coeffs[i] = 0
        return self._strip(coeffs[:k])

    def __call__(self, arg):
        if isinstance(arg, tuple):
            return self._reduce(list(arg))
        elif isinstance(arg, (int, Rational)):
            c = self.base(arg)
            return (c,) if c else ()
        raise ValueError(f"{arg} cannot be a member of {repr(self)}")

    def is_field(self):
        return True

    def size(self):
        return self.p ** self.degree

    def characteristic(self):
        return self.p

    def add(self, a, b):
        if len(a) < len(b):
            a, b = b, a
        p = self.p
        r = list(a)
        for i,c in enumerate(b):
            r[i] = (r[i] + c) % p
        return self._strip(r)

    def neg(self, a):
        p = self.p
        return tuple((p - c) % p for c in a)

    def sub(self, a, b):
        return self.add(a, self.neg(b))

    def mul(self, a, b):
        if not a or not b:
            return ()
        r = [0] * (len(a) + len(b) - 1)
        for i,x in enumerate(a):
            if x == 0:
                continue
            for j,y in enumerate(b):
                r[i + j] += x * y
        return self._reduce(r)

    def reciprocal(self, a):
        if not a:
            raise NotInvertible("0 has no reciprocal")
        inv = self.inverses.get(a)
        if inv is None:
            g, s, _ = extended_euclid(UnivariatePolynomial(self.base, list(a)), self.modulus)
            # the modulus is irreducible so g is 1
            assert g.is_one()
            inv = self._reduce(s.coeffs)
            self.inverses[a] = inv
        return inv

    def rand_elem(self, rnd=None):
        rnd = resolve(rnd)
        return self._strip([rnd.randrange(self.p) for _ in range(self.degree)])

    def embed(self, c):
        """
        The image of an element of the subfield
        """
        if self.generator is None:
            return self(c)
        result = self.zero
        for coeff in reversed(c):
            result = self.add(self.mul(result, self.generator), self(coeff))
        return result

    def _subfield_coordinates(self, a):
        # solves a = sum c_i * generator^i over GF(p), None if a lies outside of the subfield
        if self.subfield_rows is None:
            powers = [self.one]
            for _ in range(self.subfield.degree - 1):
                powers.append(self.mul(powers[-1], self.generator))
            self.subfield_rows = [[v[j] if j < len(v) else 0 for v in powers] for j in range(self.degree)]
        rhs = [a[j] if j < len(a) else 0 for j in range(self.degree)]
        info, coords = solve(self.base, self.subfield_rows, rhs)
        if info != SystemInfo.Consistent:
            return None
        return coords

    def is_base_element(self, a):
        if self.generator is None:
            return len(a) <= 1
        return self._subfield_coordinates(a) is not None

    def project(self, a):
        """
        The subfield element equal to `a`, which must lie in the subfield
        """
        assert self.is_base_element(a) , f"{a} does not lie in {repr(self.subfield)}"
        if self.generator is None:
            return a[0] if a else 0
        return self.subfield(tuple(self._subfield_coordinates(a)))

    def extension(self, degree : int = 2, rnd=None):
        """
        GF(p^(k * degree)) with this field embedded as its subfield
        """
        rnd = resolve(rnd)
        modulus = random_irreducible(self.base, self.degree * degree, rnd)
        generator = find_root(self.modulus, ExtensionField(self.base, modulus), rnd)
        return ExtensionField(self.base, modulus, subfield=self, generator=generator)

########################################################################################################################
#   Unit Tests
########################################################################################################################

import random
import unittest

class TestIrreducible(unittest.TestCase):

    def test_known(self):
        self.assertTrue(is_irreducible(UnivariatePolynomial(GF(3), [1, 0, 1])))
        self.assertFalse(is_irreducible(UnivariatePolynomial(GF(5), [1, 0, 1])))
        # x^4 + x + 1 is irreducible over GF(2), x^4 + x^2 + 1 = (x^2 + x + 1)^2 is not
        self.assertTrue(is_irreducible(UnivariatePolynomial(GF(2), [1, 1, 0, 0, 1])))
        self.assertFalse(is_irreducible(UnivariatePolynomial(GF(2), [1, 0, 1, 0, 1])))

    def test_random(self):
        rnd = random.Random(11)
        for p,k in ((2, 3), (3, 4), (67, 2)):
            f = random_irreducible(GF(p), k, rnd)
            self.assertEqual(f.degree(), k)
            self.assertTrue(f.lc() == 1)
            self.assertTrue(is_irreducible(f))

class TestExtensionField(unittest.TestCase):

    def setUp(self):
        self.rnd = random.Random(3)
        self.F = GF(3).extension(3, self.rnd)

    def test_arithmetic(self):
        F = self.F
        self.assertEqual(F.size(), 27)
        for _ in range(50):
            a = F.rand_elem(self.rnd)
            b = F.rand_elem(self.rnd)
            self.assertEqual(F.sub(F.add(a, b), b), a)
            self.assertEqual(F.mul(a, b), F.mul(b, a))
            self.assertEqual(F.add(a, F.neg(a)), F.zero)
            if a:
                self.assertEqual(F.mul(a, F.reciprocal(a)), F.one)
            # Frobenius fixes every element of GF(p^k)
            self.assertEqual(F.pow(a, 27), a)

    def test_base_embedding(self):
        F = self.F
        self.assertEqual(F(5), (2,))
        self.assertEqual(F(0), ())
        self.assertEqual(F.project(F.mul(F(2), F(2))), 1)
        with self.assertRaises(NotInvertible):
            F.reciprocal(F.zero)

class TestTower(unittest.TestCase):

    def check_embedding(self, F, degree, seed):
        rnd = random.Random(seed)
        E = F.extension(degree, rnd)
        self.assertEqual(E.size(), F.size() ** degree)
        self.assertIs(E.subfield, F)
        # the generator is a root of the subfield's modulus
        self.assertEqual(F.modulus.set_coeff_ring(E).evaluate(E.generator), E.zero)
        for _ in range(30):
            u = F.rand_elem(rnd)
            v = F.rand_elem(rnd)
            self.assertEqual(E.embed(F.add(u, v)), E.add(E.embed(u), E.embed(v)))
            self.assertEqual(E.embed(F.mul(u, v)), E.mul(E.embed(u), E.embed(v)))
            self.assertTrue(E.is_base_element(E.embed(u)))
            self.assertEqual(E.project(E.embed(u)), u)
        # t generates all of E, so it lies outside of any proper subfield
        self.assertFalse(E.is_base_element((0, 1)))
        return E

    def test_odd_characteristic(self):
        F = GF(3).extension(2, random.Random(1))
        E = self.check_embedding(F, 3, 2)
        self.assertEqual(E.size(), 729)

    def test_characteristic_two(self):
        F = GF(2).extension(2, random.Random(4))
        E = self.check_embedding(F, 3, 5)
        self.check_embedding(E, 2, 6)

    def test_find_root(self):
        F = GF(7).extension(4, random.Random(8))
        # x^2 + 1 is irreducible over GF(7) and splits over GF(7^4)
        r = find_root(UnivariatePolynomial(GF(7), [1, 0, 1]), F, random.Random(9))
        self.assertEqual(F.add(F.mul(r, r), F.one), F.zero)
