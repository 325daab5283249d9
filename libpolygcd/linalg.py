#!/usr/bin/env python3
#
#   Matrices and linear systems over a coefficient ring
#

from enum import Enum

import numpy as np

from libpolygcd.basic_types import GF, IntegerRing
from libpolygcd.errors import NotAField

class SystemInfo(Enum):
    Consistent = 0
    Inconsistent = 1
    UnderDetermined = 2

def _np_matrix(M):
    return np.array(M.entries, dtype=object).reshape(M.rows, M.cols)

def np_mul_mod(ring, mtx1, mtx2):
    # exact integer products, python ints in object arrays never overflow
    product = np.matmul(mtx1, mtx2)
    if isinstance(ring, GF):
        product = product % ring.p
    return product

def _uses_numpy(ring):
    return isinstance(ring, (GF, IntegerRing))

class Matrix:

    def __init__(self, ring, rows, cols, entries=None):
        self.ring = ring
        self.rows = rows
        self.cols = cols
        self.entries = entries or [ring.zero] * rows * cols
        assert len(self.entries) == rows * cols

    @staticmethod
    def zeros(ring, n, m=None):
        """
        n x m matrix of zeros
        """
        m = m or n
        return Matrix(ring, n, m, [ring.zero for _ in range(n * m)])

    @staticmethod
    def ident(ring, n):
        """
        n x n identity matrix
        """
        return Matrix(ring, n, n, [ring.one if i == j else ring.zero for i in range(n) for j in range(n)])

    @staticmethod
    def from_rows(ring, rows):
        n_cols = len(rows[0]) if rows else 0
        assert all(len(row) == n_cols for row in rows)
        return Matrix(ring, len(rows), n_cols, [ring(e) for row in rows for e in row])

    @staticmethod
    def vandermonde(ring, nodes, n_rows, shift=0):
        """
        Transposed Vandermonde matrix, entry (j, i) is nodes[i]^(j + shift)
        """
        return Matrix(ring, n_rows, len(nodes), [ring.pow(v, j + shift) for j in range(n_rows) for v in nodes])

    def copy(self):
        return Matrix(self.ring, self.rows, self.cols, self.entries.copy())

    def is_zero(self):
        return all(self.ring.is_zero(e) for e in self.entries)

    def __str__(self):
        return str(self.entries)

    def __repr__(self):
        return f"Matrix({repr(self.ring)}, {self.rows}, {self.cols}, {self.entries})"

    def __eq__(self, other):
        if not isinstance(other, Matrix):
            return False
        if self.rows == other.rows and self.cols == other.cols:
            return self.entries == other.entries
        return False

    def __setitem__(self, i, v):
        r,c = i
        if r >= self.rows: raise IndexError("Row too large")
        if c >= self.cols: raise IndexError("Column too large")
        self.entries[r * self.cols + c] = v

    def __getitem__(self, i):
        r,c = i
        if r >= self.rows: raise IndexError("Row too large")
        if c >= self.cols: raise IndexError("Column too large")
        return self.entries[r * self.cols + c]

    def col(self, i):
        return [self[j,i] for j in range(self.rows)]

    def row(self, i):
        return self.entries[i * self.cols:(i + 1) * self.cols]

    def transpose(self):
        return Matrix(self.ring, self.cols, self.rows, [self[i,j] for j in range(self.cols) for i in range(self.rows)])

    def __add__(self, other):
        assert self.rows == other.rows and self.cols == other.cols
        add = self.ring.add
        return Matrix(self.ring, self.rows, self.cols, [add(a, b) for a,b in zip(self.entries, other.entries)])

    def __neg__(self):
        return Matrix(self.ring, self.rows, self.cols, [self.ring.neg(e) for e in self.entries])

    def __sub__(self, other):
        return self + (-other)

    def __mul__(self, other):
        ring = self.ring
        if isinstance(other, (list, tuple)):
            # Multiply vector
            assert self.cols == len(other)
            if _uses_numpy(ring):
                vec = np.array(list(other), dtype=object).reshape(self.cols, 1)
                return [ring(int(e)) for e in np_mul_mod(ring, _np_matrix(self), vec).flatten()]
            result = []
            for i in range(self.rows):
                acc = ring.zero
                for a,b in zip(self.row(i), other):
                    acc = ring.add(acc, ring.mul(a, b))
                result.append(acc)
            return result
        elif isinstance(other, Matrix):
            # Multiply matrix
            assert self.cols == other.rows
            if _uses_numpy(ring):
                product = np_mul_mod(ring, _np_matrix(self), _np_matrix(other))
                return Matrix(ring, self.rows, other.cols, [ring(int(e)) for e in product.flatten()])
            return Matrix(ring, self.rows, other.cols, [
                x for i in range(self.rows) for x in other.transpose() * self.row(i)
            ])
        else:
            # Assumed scalar multiplier
            c = ring(other)
            return Matrix(ring, self.rows, self.cols, [ring.mul(c, e) for e in self.entries])

    def __rmul__(self, other):
        if not isinstance(other, (Matrix, list, tuple)):
            # Commutative
            return self * other
        raise NotImplementedError()

    def row_div(self, i, v):
        # divides every element in row i by v
        inv = self.ring.reciprocal(v)
        for c in range(self.cols):
            self[i,c] = self.ring.mul(self[i,c], inv)

    def row_sub(self, i, row):
        # subtract row from row i element-wise
        for c in range(self.cols):
            self[i,c] = self.ring.sub(self[i,c], row[c])

    def row_swap(self, i, j):
        # swaps rows i and j
        for c in range(self.cols):
            self[i,c], self[j,c] = self[j,c], self[i,c]

    def _rref(self, n_pivot_cols=None):
        """
        Reduced row echelon form and its pivot columns. Pivots are only searched in the first `n_pivot_cols`
        columns, so an augmented column never holds a pivot.
        """
        if not self.ring.is_field():
            raise NotAField(f"row reduction needs a field, got {self.ring}")
        ring = self.ring
        M = self.copy()
        n_pivot_cols = self.cols if n_pivot_cols is None else n_pivot_cols
        pivots = []

        lead = 0
        for r in range(self.rows):
            if n_pivot_cols <= lead:
                break

            i = r

            while ring.is_zero(M[i, lead]):
                i += 1

                if self.rows == i:
                    i = r
                    lead += 1

                    if n_pivot_cols == lead:
                        return M, pivots

            if i != r:
                M.row_swap(i, r)

            M.row_div(r, M[r, lead])

            for j in range(self.rows):
                factor = M[j, lead]
                if j != r and not ring.is_zero(factor):
                    M.row_sub(j, [ring.mul(e, factor) for e in M.row(r)])

            pivots.append(lead)
            lead += 1

        return M, pivots

    def reduced_row_echelon_form(self):
        return self._rref()[0]

    def rank(self):
        return len(self._rref()[1])

    def LUP_decomposition(self):
        """
        In-place style LU decomposition with row pivoting on the first nonzero entry. Returns (LU, P, parity) or
        (None, None, None) for a singular matrix.
        """
        assert self.rows == self.cols
        ring = self.ring
        A = self.copy()
        n = self.rows
        P = list(range(n))
        parity = 0

        for i in range(n):
            imax = next((k for k in range(i, n) if not ring.is_zero(A[k,i])), None)
            if imax is None:
                return None, None, None # Singular Input

            if imax != i:
                P[i], P[imax] = P[imax], P[i]
                # row swap
                A.row_swap(i, imax)
                # flip parity
                parity ^= 1

            inv = ring.reciprocal(A[i,i])
            for j in range(i + 1, n):
                A[j,i] = ring.mul(A[j,i], inv)

                for k in range(i + 1, n):
                    A[j,k] = ring.sub(A[j,k], ring.mul(A[j,i], A[i,k]))

        return A, P, parity

    def _bareiss_det(self):
        # fraction-free elimination, every division is exact
        ring = self.ring
        A = self.copy()
        n = self.rows
        sign = ring.one
        prev = ring.one
        for k in range(n - 1):
            if ring.is_zero(A[k,k]):
                swap = next((i for i in range(k + 1, n) if not ring.is_zero(A[i,k])), None)
                if swap is None:
                    return ring.zero
                A.row_swap(k, swap)
                sign = ring.neg(sign)
            for i in range(k + 1, n):
                for j in range(k + 1, n):
                    num = ring.sub(ring.mul(A[i,j], A[k,k]), ring.mul(A[i,k], A[k,j]))
                    A[i,j] = ring.divide_exact(num, prev)
            prev = A[k,k]
        return ring.mul(sign, A[n - 1,n - 1])

    def det(self):
        assert self.rows == self.cols
        ring = self.ring
        if self.rows == 0:
            return ring.one
        if not ring.is_field():
            return self._bareiss_det()
        LU, _, parity = self.LUP_decomposition()
        if LU is None:
            return ring.zero # Singular input
        det = ring.one if parity == 0 else ring.neg(ring.one)
        for i in range(self.rows):
            det = ring.mul(det, LU[i,i])
        return det

    def solve(self, rhs):
        return solve(self.ring, [self.row(i) for i in range(self.rows)], rhs)

def _np_rref_mod(ring, lhs, rhs):
    # row reduction of the augmented system over GF(p), whole rows at a time on object arrays of python ints
    p = ring.p
    n_rows = len(lhs)
    n_cols = len(lhs[0])
    M = np.array([list(row) + [b] for row,b in zip(lhs, rhs)], dtype=object).reshape(n_rows, n_cols + 1) % p
    pivots = []
    r = 0
    for c in range(n_cols):
        if r == n_rows:
            break
        i = next((k for k in range(r, n_rows) if M[k, c] != 0), None)
        if i is None:
            continue
        if i != r:
            M[[r, i]] = M[[i, r]]
        M[r] = M[r] * ring.reciprocal(M[r, c]) % p
        for j in range(n_rows):
            factor = M[j, c]
            if j != r and factor != 0:
                M[j] = (M[j] - factor * M[r]) % p
        pivots.append(c)
        r += 1
    return M, pivots

def solve(ring, lhs, rhs):
    """
    Solves lhs * x = rhs over a field by Gaussian elimination. `lhs` is a list of rows and may be rectangular.
    Returns (SystemInfo, solution), the solution is None unless the system is Consistent with a unique solution.
    """
    if not ring.is_field():
        raise NotAField(f"linear systems are solved over fields, got {ring}")
    assert len(lhs) == len(rhs)
    n_rows = len(lhs)
    n_cols = len(lhs[0]) if n_rows else 0

    if n_cols == 0:
        if all(ring.is_zero(b) for b in rhs):
            return SystemInfo.Consistent, []
        return SystemInfo.Inconsistent, None

    if isinstance(ring, GF):
        M, pivots = _np_rref_mod(ring, lhs, rhs)
    else:
        augmented = Matrix(ring, n_rows, n_cols + 1, [e for row,b in zip(lhs, rhs) for e in list(row) + [b]])
        M, pivots = augmented._rref(n_cols)

    # a zero row of the coefficient part with a nonzero right hand side
    for r in range(len(pivots), n_rows):
        if not ring.is_zero(M[r, n_cols]):
            return SystemInfo.Inconsistent, None

    if len(pivots) < n_cols:
        return SystemInfo.UnderDetermined, None

    solution = [ring.zero] * n_cols
    for r,c in enumerate(pivots):
        solution[c] = M[r, n_cols]
    return SystemInfo.Consistent, solution

########################################################################################################################
#   Unit Tests
########################################################################################################################

import random
import unittest

from libpolygcd.basic_types import QQ, ZZ, Rational

class TestMatrix(unittest.TestCase):

    def test_init(self):
        M = Matrix(ZZ, 2, 2, [
            1, 2,
            3, 4
        ])
        self.assertEqual(M[0,0], 1)
        self.assertEqual(M[0,1], 2)
        self.assertEqual(M[1,0], 3)
        self.assertEqual(M[1,1], 4)

    def test_arith(self):
        M = Matrix(ZZ, 2, 2, [
            1, 2,
            3, 4
        ])
        I = Matrix.ident(ZZ, 2)

        A = M * M * M - M * M
        B = M * M * (M - I)
        self.assertEqual(A, B)

        M2 = Matrix(ZZ, 3, 3, [
             4, -1,  3,
            -2,  1,  2,
            -1,  3, -3
        ])
        self.assertEqual(4 * M2 + Matrix.ident(ZZ, 3), Matrix(ZZ, 3, 3, [
            17, -4, 12,
            -8,  5,  8,
            -4, 12, -11
        ]))

    def test_det(self):
        M = Matrix(ZZ, 3, 3, [
            0, 1, 2,
            3, 4, 5,
            6, 7, 8
        ])

        self.assertEqual(M.det(), 0)

        F = GF(101)
        N = Matrix(F, 3, 3, [F(e) for e in (2, -1, -2, -4, 6, 3, -4, -2, 8)])
        self.assertEqual(N.det(), F(24))
        self.assertEqual(Matrix(ZZ, 3, 3, [2, -1, -2, -4, 6, 3, -4, -2, 8]).det(), 24)

    def test_mul_vector(self):
        M = Matrix(ZZ, 3, 3, [
            1, 2, 3,
            4, 5, 6,
            7, 8, 9
        ])
        self.assertEqual(M * [1, 2, 3], [14, 32, 50])

        F = GF(7)
        N = Matrix(F, 3, 3, [F(e) for e in M.entries])
        self.assertEqual(N * [1, 2, 3], [0, 4, 1])

    def test_rank(self):
        M = Matrix(QQ, 3, 3, [QQ(e) for e in (0, 1, 2, 3, 4, 5, 6, 7, 8)])
        self.assertEqual(M.rank(), 2)
        R = M.reduced_row_echelon_form()
        self.assertEqual(R.row(0), [QQ(1), QQ(0), QQ(-1)])
        self.assertEqual(R.row(2), [QQ(0)] * 3)

class TestSolve(unittest.TestCase):

    def test_consistent(self):
        lhs = [[Rational(2, 1), Rational(1, 1)], [Rational(1, 1), Rational(3, 1)]]
        info, x = solve(QQ, lhs, [Rational(3, 1), Rational(5, 1)])
        self.assertEqual(info, SystemInfo.Consistent)
        self.assertEqual(x, [Rational(4, 5), Rational(7, 5)])

    def test_overdetermined(self):
        F = GF(17)
        lhs = [[1, 1], [1, 2], [1, 3]]
        info, x = solve(F, lhs, [3, 5, 7])
        self.assertEqual(info, SystemInfo.Consistent)
        self.assertEqual(x, [1, 2])
        info, x = solve(F, lhs, [3, 5, 8])
        self.assertEqual(info, SystemInfo.Inconsistent)
        self.assertIsNone(x)

    def test_underdetermined(self):
        F = GF(17)
        info, x = solve(F, [[1, 1], [2, 2]], [3, 6])
        self.assertEqual(info, SystemInfo.UnderDetermined)
        self.assertIsNone(x)
        info, _ = solve(F, [[1, 1], [2, 2]], [3, 7])
        self.assertEqual(info, SystemInfo.Inconsistent)
        info, _ = solve(F, [[0, 0]], [0])
        self.assertEqual(info, SystemInfo.UnderDetermined)

    def test_not_a_field(self):
        with self.assertRaises(NotAField):
            solve(ZZ, [[1]], [1])

    def test_random_square(self):
        rnd = random.Random(7)
        F = GF(65521)
        for n in range(1, 8):
            A = Matrix(F, n, n, [F.rand_elem(rnd) for _ in range(n * n)])
            x = [F.rand_elem(rnd) for _ in range(n)]
            b = A * x
            info, y = A.solve(b)
            if A.det() == 0:
                self.assertNotEqual(info, SystemInfo.Inconsistent)
            else:
                self.assertEqual(info, SystemInfo.Consistent)
                self.assertEqual(y, x)

    def test_prime_field_elimination(self):
        rnd = random.Random(13)
        F = GF(31)
        for _ in range(40):
            n_rows = rnd.randint(1, 6)
            n_cols = rnd.randint(1, 6)
            # few distinct entries make dependent rows likely
            lhs = [[rnd.choice([0, 0, 1, 2, 30]) for _ in range(n_cols)] for _ in range(n_rows)]
            rhs = [rnd.choice([0, 1, 5]) for _ in range(n_rows)]
            M, pivots = _np_rref_mod(F, lhs, rhs)
            R, expected_pivots = Matrix.from_rows(F, [row + [b] for row,b in zip(lhs, rhs)])._rref(n_cols)
            self.assertEqual(pivots, expected_pivots)
            for r in range(n_rows):
                self.assertEqual([int(e) for e in M[r, :n_cols]], R.row(r)[:n_cols])
            consistent = all(M[r, n_cols] == 0 for r in range(len(pivots), n_rows))
            self.assertEqual(consistent, all(R[r, n_cols] == 0 for r in range(len(pivots), n_rows)))
