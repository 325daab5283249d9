#!/usr/bin/env python3
#
#   Univariate GCD: Euclidean and subresultant remainder sequences, modular GCD over Z, square-free factorization
#

import logging
from itertools import islice
from math import isqrt

from libpolygcd.basic_types import GF, IntegerRing, crt, gcd, primes_from, symmetric_mod
from libpolygcd.errors import DomainMismatch, EvaluationStackExhausted, NotAField
from libpolygcd.univariate import UnivariatePolynomial

logger = logging.getLogger(__name__)

# Primes tried by modular_gcd before giving up
MAX_LIFTING_PRIMES = 4096

########################################################################################################################
#   Remainder Sequences
########################################################################################################################

def euclid(a : UnivariatePolynomial, b : UnivariatePolynomial):
    """
    Euclidean remainder sequence [a, b, r_1, ..., r_k], r_k is the last nonzero remainder and a GCD of a and b.
    Requires exact remainders, so the coefficient ring should be a field.
    """
    if a.degree() < b.degree():
        a, b = b, a
    prs = [a, b]
    if b.is_zero():
        return prs[:1]
    while True:
        r = prs[-2] % prs[-1]
        if r.is_zero():
            return prs
        prs.append(r)

def extended_euclid(a : UnivariatePolynomial, b : UnivariatePolynomial):
    """
    Returns (g, s, t) with g = s*a + t*b monic and g = gcd(a, b)
    """
    ring = a.ring
    zero = UnivariatePolynomial(ring, [])
    one = UnivariatePolynomial(ring, [ring.one])
    r0, r1 = a, b
    s0, s1 = one, zero
    t0, t1 = zero, one
    while not r1.is_zero():
        q, r = r0.divmod(r1)
        r0, r1 = r1, r
        s0, s1 = s1, s0 - q * s1
        t0, t1 = t1, t0 - q * t1
    if r0.is_zero():
        return r0, s0, t0
    inv = ring.reciprocal(r0.lc())
    return r0.scale(inv), s0.scale(inv), t0.scale(inv)

def pseudo_euclid(a : UnivariatePolynomial, b : UnivariatePolynomial, primitive : bool = True):
    """
    Pseudo-remainder sequence, each remainder made primitive when `primitive` is set
    """
    if a.degree() < b.degree():
        a, b = b, a
    prs = [a, b]
    if b.is_zero():
        return prs[:1]
    while True:
        r = prs[-2].pseudo_remainder(prs[-1])
        if r.is_zero():
            return prs
        if primitive:
            r = r.primitive_part()
        prs.append(r)

def subresultant_euclid(a : UnivariatePolynomial, b : UnivariatePolynomial):
    """
    Subresultant remainder sequence. Coefficient growth stays polynomial without taking contents, and all the
    divisions involved are exact. The last element is an associate of the GCD.
    """
    if a.degree() < b.degree():
        a, b = b, a
    ring = a.ring
    prs = [a, b]
    if b.is_zero():
        return prs[:1]
    g = ring.one
    h = ring.one
    u, v = a, b
    while True:
        delta = u.degree() - v.degree()
        r = u.pseudo_remainder(v)
        if r.is_zero():
            return prs
        divisor = ring.mul(g, ring.pow(h, delta))
        v_next = UnivariatePolynomial(ring, [ring.divide_exact(c, divisor) for c in r.coeffs])
        prs.append(v_next)
        u, v = v, v_next
        g = u.lc()
        if delta != 0:
            h = ring.divide_exact(ring.pow(g, delta), ring.pow(h, delta - 1))

########################################################################################################################
#   GCD
########################################################################################################################

def gcd_field(a : UnivariatePolynomial, b : UnivariatePolynomial):
    """
    Monic GCD over a field
    """
    if a.is_zero():
        return b.monic()
    if b.is_zero():
        return a.monic()
    return euclid(a, b)[-1].monic()

def mignotte_bound(f : UnivariatePolynomial) -> int:
    """
    Bound on the coefficients of any factor of f with the same leading coefficient
    """
    norm = isqrt(sum(c * c for c in f.coeffs)) + 1
    return (1 << f.degree()) * norm

def modular_gcd(a : UnivariatePolynomial, b : UnivariatePolynomial):
    """
    GCD over Z from images modulo a sequence of primes, primitive with positive leading coefficient times the
    GCD of the contents.
    """
    ring = a.ring
    c = gcd(a.content(), b.content())
    if a.is_zero() or b.is_zero():
        return (a + b).primitive_part().scale(c)
    a = a.primitive_part()
    b = b.primitive_part()
    if a.degree() == 0 or b.degree() == 0:
        return UnivariatePolynomial(ring, [c])

    lc_gcd = gcd(a.lc(), b.lc())
    bound = 2 * lc_gcd * min(mignotte_bound(a), mignotte_bound(b))
    degree_bound = min(a.degree(), b.degree())

    base = None
    modulus = 1
    previous = None
    for p in islice(primes_from(3), MAX_LIFTING_PRIMES):
        if a.lc() % p == 0 or b.lc() % p == 0:
            continue
        F = GF(p)
        image = gcd_field(a.set_coeff_ring(F), b.set_coeff_ring(F))
        if image.degree() == 0:
            return UnivariatePolynomial(ring, [c])
        if image.degree() > degree_bound:
            # unlucky prime
            logger.debug("skipping unlucky prime %d, degree %d > %d", p, image.degree(), degree_bound)
            continue
        if image.degree() < degree_bound:
            logger.debug("prime %d lowers the degree bound to %d, restarting", p, image.degree())
            degree_bound = image.degree()
            base = None
            previous = None
        image = image.scale(lc_gcd % p)

        if base is None:
            base = list(image.coeffs)
            modulus = p
        else:
            base = [crt(r, modulus, s, p) for r,s in zip(base, image.coeffs)]
            modulus *= p

        candidate = UnivariatePolynomial(ring, [symmetric_mod(r, modulus) for r in base]).primitive_part()
        if (previous is not None and candidate == previous) or modulus > bound:
            if b.divide_or_none(candidate) is not None and a.divide_or_none(candidate) is not None:
                return candidate.scale(c)
        previous = candidate

    raise EvaluationStackExhausted(f"no GCD after {MAX_LIFTING_PRIMES} primes")

def polynomial_gcd(a : UnivariatePolynomial, b : UnivariatePolynomial):
    """
    Monic GCD over fields, primitive GCD with positive leading coefficient over Z
    """
    if a.ring != b.ring:
        raise DomainMismatch(f"{a.ring} and {b.ring} differ")
    if a.ring.is_field():
        return gcd_field(a, b)
    if isinstance(a.ring, IntegerRing):
        return modular_gcd(a, b)
    raise NotAField(f"univariate GCD is not available over {a.ring}")

########################################################################################################################
#   Square-free Factorization
########################################################################################################################

def _pth_root(f : UnivariatePolynomial):
    # f(x) = g(x)^p with f' = 0, so only every p-th coefficient is nonzero
    ring = f.ring
    p = ring.characteristic()
    frobenius_inverse = ring.size() // p
    return UnivariatePolynomial(ring, [ring.pow(c, frobenius_inverse) for c in f.coeffs[::p]])

def _square_free_char_p(f : UnivariatePolynomial):
    factors = []
    p = f.ring.characteristic()
    c = gcd_field(f, f.derivative())
    w = f.divide_exact(c)
    i = 1
    while w.degree() > 0:
        y = gcd_field(w, c)
        z = w.divide_exact(y)
        if z.degree() > 0:
            factors.append((z, i))
        i += 1
        w = y
        c = c.divide_exact(y)
    if c.degree() > 0:
        factors.extend((g, m * p) for g,m in _square_free_char_p(_pth_root(c)))
    return factors

def _square_free_char_0(f : UnivariatePolynomial):
    # Yun's algorithm
    factors = []
    df = f.derivative()
    a0 = polynomial_gcd(f, df)
    b = f.divide_exact(a0)
    c = df.divide_exact(a0)
    d = c - b.derivative()
    i = 1
    while b.degree() > 0:
        a = polynomial_gcd(b, d)
        b = b.divide_exact(a)
        c = d.divide_exact(a)
        d = c - b.derivative()
        if a.degree() > 0:
            factors.append((a, i))
        i += 1
    return factors

def square_free_factorization(f : UnivariatePolynomial):
    """
    Pairwise coprime square-free factors g_i with multiplicities m_i such that prod(g_i^m_i) is f up to a unit
    (and the integer content over Z). Factors are sorted by multiplicity.
    """
    ring = f.ring
    if f.degree() <= 0:
        return []
    if ring.characteristic() != 0:
        if not ring.is_field():
            raise NotAField(f"square-free factorization is not available over {ring}")
        factors = _square_free_char_p(f.monic())
    else:
        factors = _square_free_char_0(f.primitive_part())
    return sorted(factors, key=lambda t: t[1])

def square_free_part(f : UnivariatePolynomial):
    result = UnivariatePolynomial(f.ring, [f.ring.one])
    for g,_ in square_free_factorization(f):
        result = result * g
    return result

########################################################################################################################
#   Unit Tests
########################################################################################################################

import random
import unittest

from libpolygcd.basic_types import QQ, ZZ, Rational

def _upoly(ring, coeffs):
    return UnivariatePolynomial(ring, coeffs, convert=True)

class TestRemainderSequences(unittest.TestCase):

    def test_euclid(self):
        F = GF(67)
        g = _upoly(F, [3, 1])
        a = g * _upoly(F, [1, 0, 1])
        b = g * _upoly(F, [5, 2])
        prs = euclid(a, b)
        self.assertTrue(prs[-1].divide_or_none(g) is not None)
        self.assertEqual(prs[-1].monic(), g)
        self.assertEqual(gcd_field(a, b), g)

    def test_extended_euclid(self):
        F = GF(101)
        a = _upoly(F, [1, 2, 3, 4])
        b = _upoly(F, [7, 0, 1])
        g, s, t = extended_euclid(a, b)
        self.assertEqual(s * a + t * b, g)
        self.assertTrue(g.is_one())

    def test_subresultant(self):
        # Knuth's example
        a = _upoly(ZZ, [-5, 2, 8, -3, -3, 0, 1, 0, 1])
        b = _upoly(ZZ, [21, -9, -4, 0, 5, 0, 3])
        prs = subresultant_euclid(a, b)
        self.assertEqual(prs[-1].degree(), 0)
        self.assertEqual(abs(prs[-1].coeffs[0]), 260708)
        self.assertEqual([p.degree() for p in prs], [8, 6, 4, 2, 1, 0])

    def test_subresultant_gcd(self):
        g = _upoly(ZZ, [-3, 0, 2])
        a = g * _upoly(ZZ, [1, 1, 5])
        b = g * _upoly(ZZ, [7, -1])
        prs = subresultant_euclid(a, b)
        self.assertEqual(prs[-1].primitive_part(), g)
        self.assertEqual(pseudo_euclid(a, b)[-1].primitive_part(), g)

class TestModularGCD(unittest.TestCase):

    def test_small(self):
        g = _upoly(ZZ, [-3, 0, 2])
        a = g * _upoly(ZZ, [1, 1, 5])
        b = g * _upoly(ZZ, [7, -1])
        self.assertEqual(modular_gcd(a, b), g)
        self.assertEqual(modular_gcd(a.scale(6), b.scale(-4)), g.scale(2))

    def test_linear_factor(self):
        a = _upoly(ZZ, [1, 1]) * _upoly(ZZ, [2, 1])
        b = _upoly(ZZ, [1, 1]) * _upoly(ZZ, [3, 1])
        self.assertEqual(polynomial_gcd(a, b), _upoly(ZZ, [1, 1]))
        self.assertEqual(square_free_part(a * a * b), a * b.divide_exact(_upoly(ZZ, [1, 1])))

    def test_random(self):
        rnd = random.Random(5)
        for _ in range(10):
            g = _upoly(ZZ, [rnd.randint(-1000, 1000) for _ in range(rnd.randint(1, 6))] + [rnd.randint(1, 50)])
            f1 = _upoly(ZZ, [rnd.randint(-1000, 1000) for _ in range(5)] + [1])
            f2 = _upoly(ZZ, [rnd.randint(-1000, 1000) for _ in range(4)] + [3])
            a = g * f1
            b = g * f2
            r = modular_gcd(a, b)
            self.assertIsNotNone(a.divide_or_none(r))
            self.assertIsNotNone(b.divide_or_none(r))
            self.assertIsNotNone(r.divide_or_none(g.primitive_part()))

    def test_coprime(self):
        a = _upoly(ZZ, [1, 0, 1])
        b = _upoly(ZZ, [1, 1])
        self.assertEqual(polynomial_gcd(a, b), _upoly(ZZ, [1]))

    def test_zero(self):
        a = _upoly(ZZ, [2, -4])
        zero = _upoly(ZZ, [])
        self.assertEqual(polynomial_gcd(a, zero), _upoly(ZZ, [-2, 4]))
        self.assertEqual(polynomial_gcd(zero, a), _upoly(ZZ, [-2, 4]))
        self.assertEqual(polynomial_gcd(zero, zero), zero)

    def test_dispatch(self):
        a = _upoly(QQ, [Rational(1, 2), 1])
        b = _upoly(QQ, [Rational(1, 4), Rational(3, 2), 2])
        self.assertEqual(polynomial_gcd(a, b), _upoly(QQ, [Rational(1, 2), 1]))
        with self.assertRaises(DomainMismatch):
            polynomial_gcd(a, _upoly(ZZ, [1, 1]))

class TestSquareFree(unittest.TestCase):

    def test_integers(self):
        x1 = _upoly(ZZ, [1, 1])
        x2 = _upoly(ZZ, [-2, 0, 1])
        f = x1 * x2**2 * _upoly(ZZ, [3, 1])**3
        factors = square_free_factorization(f)
        self.assertEqual(factors, [(x1, 1), (x2, 2), (_upoly(ZZ, [3, 1]), 3)])
        self.assertEqual(square_free_part(f), x1 * x2 * _upoly(ZZ, [3, 1]))

    def test_finite_field(self):
        F = GF(3)
        x1 = _upoly(F, [1, 1])
        x2 = _upoly(F, [1, 0, 1])
        # (x + 1)^2 (x^2 + 1)^3, the cube only shows up through the p-th root
        f = x1**2 * x2**3
        self.assertEqual(square_free_factorization(f), [(x1, 2), (x2, 3)])
