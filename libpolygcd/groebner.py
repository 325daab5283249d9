#!/usr/bin/env python3
#
#   Groebner bases by Buchberger's algorithm
#

import heapq
import logging
from typing import List

from libpolygcd.basic_types import Polynomial, monomial_divisible_by, monomial_lcm
from libpolygcd.errors import NotAField

logger = logging.getLogger(__name__)

def _ensure_field(ideal):
    for p in ideal:
        if not p.ring.coeff_ring.is_field():
            raise NotAField(f"Groebner bases are computed over fields, got {p.ring.coeff_ring}")

def remainder(poly : Polynomial, basis : List[Polynomial]) -> Polynomial:
    return poly.divide(basis)[1]

def syzygy(a : Polynomial, b : Polynomial) -> Polynomial:
    return a.S_polynomial(b)

def share_variables(m1, m2) -> bool:
    return any(d1 != 0 and d2 != 0 for d1,d2 in zip(m1, m2))

def remove_redundant(basis : List[Polynomial]) -> List[Polynomial]:
    """
    Replaces each element by its remainder modulo the others, dropping those that reduce to zero
    """
    basis = list(basis)
    i = 0
    while i < len(basis):
        el = basis.pop(i)
        r = remainder(el, basis)
        if r.is_zero():
            continue
        basis.insert(i, r)
        i += 1
    return basis

def minimize_groebner_basis(basis : List[Polynomial]) -> List[Polynomial]:
    """
    Drops elements whose leading monomial is divisible by that of another element, and makes the rest monic
    """
    result = []
    for p in basis:
        lm = p.leading_monomial()
        if any(monomial_divisible_by(lm, q.leading_monomial()) for q in result):
            continue
        result = [q for q in result if not monomial_divisible_by(q.leading_monomial(), lm)]
        result.append(p)
    return [p.monic() for p in result]

def _canonical(basis : List[Polynomial]) -> List[Polynomial]:
    basis = remove_redundant(minimize_groebner_basis(basis))
    basis = [p.monic() for p in basis]
    if basis:
        order = basis[0].ring.order
        basis.sort(key=lambda p: order(p.leading_monomial()))
    return basis

def buchberger_gb_simple(ideal : List[Polynomial]) -> List[Polynomial]:
    """
    Plain Buchberger: adds all nonzero S-polynomial remainders until none is left. Returns the reduced basis.
    """
    _ensure_field(ideal)
    basis = remove_redundant([p for p in ideal if not p.is_zero()])
    while basis:
        new = []
        for i in range(len(basis) - 1):
            for j in range(i + 1, len(basis)):
                fi, fj = basis[i], basis[j]
                if not share_variables(fi.leading_monomial(), fj.leading_monomial()):
                    continue
                s = remainder(syzygy(fi, fj), basis)
                if not s.is_zero():
                    new.append(s)
        if not new:
            break
        basis = remove_redundant(basis + new)
    return _canonical(basis)

class SyzygyPair:
    """
    A pair i < j of basis elements, ordered by the lcm of their leading monomials
    """

    def __init__(self, i, j, basis, order):
        if i > j:
            i, j = j, i
        self.i = i
        self.j = j
        self.lcm = monomial_lcm(basis[i].leading_monomial(), basis[j].leading_monomial())
        self.key = order(self.lcm)

    def index(self):
        return (self.i, self.j)

    def __lt__(self, other):
        return (self.key, self.i, self.j) < (other.key, other.i, other.j)

def _pair(i, j):
    return (i, j) if i < j else (j, i)

def groebner_basis(ideal : List[Polynomial]) -> List[Polynomial]:
    """
    Reduced Groebner basis of the ideal, sorted by leading monomial.

    Pairs are processed smallest lcm first. A pair is skipped when its leading monomials are coprime, or when
    the lcm is divisible by the leading monomial of a third element whose pairs with both were already processed.
    Elements that the newest element reduces are re-reduced.
    """
    _ensure_field(ideal)
    basis = remove_redundant([p for p in ideal if not p.is_zero()])
    if not basis:
        return []
    order = basis[0].ring.order
    # ascending leading monomials make the divisions faster
    basis.sort(key=lambda p: order(p.leading_monomial()))

    heap = []
    pending = set()

    def add_pair(i, j):
        pair = SyzygyPair(i, j, basis, order)
        heapq.heappush(heap, pair)
        pending.add(pair.index())

    def live(exclude=None):
        return [p for k,p in enumerate(basis) if p is not None and k != exclude]

    for i in range(len(basis) - 1):
        for j in range(i + 1, len(basis)):
            add_pair(i, j)

    n_reduced = 0
    n_skipped = 0
    while heap:
        pair = heapq.heappop(heap)
        if pair.index() not in pending:
            # replaced or removed
            continue
        pending.discard(pair.index())
        i, j = pair.i, pair.j
        fi, fj = basis[i], basis[j]
        if fi is None or fj is None:
            continue

        lcm = monomial_lcm(fi.leading_monomial(), fj.leading_monomial())
        if not share_variables(fi.leading_monomial(), fj.leading_monomial()):
            # coprime leading monomials
            n_skipped += 1
            continue

        if any(fk is not None and k != i and k != j
               and _pair(i, k) not in pending and _pair(j, k) not in pending
               and monomial_divisible_by(lcm, fk.leading_monomial())
               for k,fk in enumerate(basis)):
            # chain criterion
            n_skipped += 1
            continue

        s = remainder(syzygy(fi, fj), live())
        n_reduced += 1
        if s.is_zero():
            continue

        s = s.monic()
        basis.append(s)
        n = len(basis) - 1
        for k in range(n):
            if basis[k] is not None:
                add_pair(k, n)

        # re-reduce elements that the new one reduces
        for k in range(n):
            fk = basis[k]
            if fk is None or not any(monomial_divisible_by(m, s.leading_monomial()) for m in fk.terms):
                continue
            rem = remainder(fk, live(exclude=k))
            if rem == fk:
                continue
            if rem.is_zero():
                basis[k] = None
                pending.difference_update({_pair(l, k) for l in range(len(basis)) if l != k})
            else:
                basis[k] = rem
                for l in range(len(basis)):
                    if l != k and basis[l] is not None:
                        add_pair(l, k)

    logger.debug("Buchberger: %d S-polynomials reduced, %d pairs skipped", n_reduced, n_skipped)
    return _canonical(live())

########################################################################################################################
#   Unit Tests
########################################################################################################################

import unittest

from libpolygcd.basic_types import GF, QQ, ZZ, MonomialOrderLex, PolynomialRing, Rational

class TestGroebner(unittest.TestCase):

    def setUp(self):
        self.F = GF(509)
        R = PolynomialRing(self.F, "xyz")
        x,y,z = R.variables()
        self.G = [
            980*z**2 - 18*y - 201*z + 13,
            35*y*z - 4*y + 2*z - 1,
            10*y**2 - y - 12*z + 1,
            5*x**2 - 4*y + 2*z - 1
        ]

    def test_lex(self):
        R2 = PolynomialRing(self.F, "xyz", order=MonomialOrderLex)
        x,y,z = R2.variables()
        G2 = groebner_basis([Polynomial(R2, g.terms) for g in self.G])

        self.assertEqual(len(G2), 3)
        self.assertEqual(G2[0], z ** 3 + 102 * z ** 2 + 66 * z + 134)
        self.assertEqual(G2[1], y + 398 * z ** 2 + 96 * z + 480)
        self.assertEqual(G2[2], x ** 2 + 13 * z ** 2 + 179 * z + 282)

    def test_agrees_with_simple(self):
        R2 = PolynomialRing(self.F, "xyz", order=MonomialOrderLex)
        ideal = [Polynomial(R2, g.terms) for g in self.G]
        self.assertEqual(groebner_basis(ideal), buchberger_gb_simple(ideal))
        # already a basis in the default order
        self.assertEqual(groebner_basis(self.G), buchberger_gb_simple(self.G))
        self.assertEqual(len(groebner_basis(self.G)), 4)

    def test_rationals(self):
        R = PolynomialRing(QQ, "xy", order=MonomialOrderLex)
        x,y = R.variables()
        ideal = [x**2 + y**2 - 1, x - y]
        G = groebner_basis(ideal)
        self.assertEqual(G, [y**2 - Rational(1, 2), x - y])
        self.assertEqual(G, buchberger_gb_simple(ideal))
        for g in ideal:
            self.assertTrue(remainder(g, G).is_zero())

    def test_members_reduce_to_zero(self):
        R = PolynomialRing(GF(32003), "xyz")
        x,y,z = R.variables()
        ideal = [x**2*y - z**3 + 1, x*y*z - 2*y**2, y**3 - x*z + 5]
        G = groebner_basis(ideal)
        self.assertEqual(G, buchberger_gb_simple(ideal))
        for g in ideal:
            self.assertTrue(remainder(g, G).is_zero())
        for i in range(len(G)):
            for j in range(i + 1, len(G)):
                self.assertTrue(remainder(syzygy(G[i], G[j]), G).is_zero())

    def test_trivial(self):
        R = PolynomialRing(GF(7), "xy")
        x,y = R.variables()
        self.assertEqual(groebner_basis([R.zero()]), [])
        self.assertEqual(groebner_basis([x + 1, 3*x + 3]), [x + 1])
        self.assertEqual(groebner_basis([x*y + 1, x, y]), [R.one()])

    def test_not_a_field(self):
        R = PolynomialRing(ZZ, "xy")
        x,y = R.variables()
        with self.assertRaises(NotAField):
            groebner_basis([x + y])
