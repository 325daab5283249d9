#!/usr/bin/env python3
#
#   Transposed Vandermonde solvers
#

from libpolygcd.errors import NotAField
from libpolygcd.linalg import SystemInfo

def _solve_transposed_vandermonde(ring, vs, fs, shifted):
    if not ring.is_field():
        raise NotAField(f"Vandermonde systems are solved over fields, got {ring}")
    n_eqs = len(vs)
    assert len(fs) == n_eqs

    if n_eqs == 0:
        return SystemInfo.Consistent, []

    if shifted and any(ring.is_zero(v) for v in vs):
        # a zero node gives a zero column
        return SystemInfo.UnderDetermined, None

    # coefficients of the master polynomial prod(x - vs[i])
    cis = [ring.zero] * n_eqs

    cis[n_eqs - 1] = ring.neg(vs[0])

    for i in range(1, n_eqs):
        xx = vs[i]

        for j in range(n_eqs - 1 - i, n_eqs - 1):
            cis[j] = ring.sub(cis[j], ring.mul(xx, cis[j + 1]))

        cis[n_eqs - 1] = ring.sub(cis[n_eqs - 1], xx)

    result = [ring.zero] * n_eqs

    for i in range(n_eqs):
        xx = vs[i]
        t = b = ring.one
        s = fs[n_eqs - 1]

        for j in reversed(range(1, n_eqs)):
            b = ring.add(cis[j], ring.mul(xx, b))
            s = ring.add(s, ring.mul(fs[j - 1], b))
            t = ring.add(ring.mul(xx, t), b)

        # t is the product of (vs[i] - vs[j]) over j != i
        if ring.is_zero(t):
            return SystemInfo.UnderDetermined, None

        w = ring.divide_exact(s, t)
        if shifted:
            w = ring.divide_exact(w, xx)
        result[i] = w

    return SystemInfo.Consistent, result

def solve_transposed_vandermonde(ring, vs, fs):
    """
    Solves sum_i w_i * vs[i]^j = fs[j] for j = 0..n-1 in O(n^2).

    Adapted from Numerical Recipes in C
    """
    return _solve_transposed_vandermonde(ring, vs, fs, False)

def solve_shifted_transposed_vandermonde(ring, vs, fs):
    """
    Solves sum_i w_i * vs[i]^(j + 1) = fs[j] for j = 0..n-1 in O(n^2).
    """
    return _solve_transposed_vandermonde(ring, vs, fs, True)

########################################################################################################################
#   Unit Tests
########################################################################################################################

import random
import unittest

from libpolygcd.basic_types import GF, QQ, Rational
from libpolygcd.linalg import Matrix, solve

class TestVandermonde(unittest.TestCase):

    def test_agrees_with_gauss(self):
        rnd = random.Random(17)
        F = GF(65521)
        for n in range(1, 12):
            vs = []
            while len(vs) < n:
                vs.append(F.rand_elem_distinct(vs + [0], rnd))
            ws = [F.rand_elem(rnd) for _ in range(n)]
            for shift,solver in ((0, solve_transposed_vandermonde), (1, solve_shifted_transposed_vandermonde)):
                V = Matrix.vandermonde(F, vs, n, shift)
                fs = V * ws
                info, result = solver(F, vs, fs)
                self.assertEqual(info, SystemInfo.Consistent)
                self.assertEqual(result, ws)
                self.assertEqual(solve(F, [V.row(i) for i in range(n)], fs), (SystemInfo.Consistent, ws))

    def test_rationals(self):
        vs = [QQ(2), QQ(3), QQ(-1)]
        ws = [Rational(1, 2), QQ(4), QQ(-3)]
        fs = Matrix.vandermonde(QQ, vs, 3) * ws
        self.assertEqual(solve_transposed_vandermonde(QQ, vs, fs), (SystemInfo.Consistent, ws))

    def test_degenerate(self):
        F = GF(101)
        self.assertEqual(solve_transposed_vandermonde(F, [3, 3], [1, 2])[0], SystemInfo.UnderDetermined)
        self.assertEqual(solve_shifted_transposed_vandermonde(F, [0, 3], [1, 2])[0], SystemInfo.UnderDetermined)
        self.assertEqual(solve_transposed_vandermonde(F, [], []), (SystemInfo.Consistent, []))
