#!/usr/bin/env python3
#
#   Number theory helpers, coefficient rings and sparse multivariate polynomials
#

import operator
from functools import reduce
from typing import Dict, List, Optional, Tuple

from libpolygcd.errors import DomainMismatch, EvaluationStackExhausted, NotDivisible, NotInvertible
from libpolygcd.rng import resolve

def isiterable(x):
    return isinstance(x, (tuple, list))

def prod(l, start=1):
    return reduce(operator.mul, l, start)

########################################################################################################################
#   Modular Arithmetic
########################################################################################################################

def gcd(a, b):
    while b != 0:
        a %= b
        a,b = b,a
    return abs(a)

def xgcd(a, b):
    prevx, x = 1, 0
    prevy, y = 0, 1
    while b != 0:
        q, r = divmod(a, b)
        x, prevx = prevx - q * x, x
        y, prevy = prevy - q * y, y
        a, b = b, r
    return a, prevx, prevy

def mod_inverse(x : int, p : int) -> int:
    a,inv,_ = xgcd(x % p, p)
    if a != 1:
        raise NotInvertible(f"{x} is not invertible modulo {p}")
    return inv % p

def crt(r1 : int, m1 : int, r2 : int, m2 : int) -> int:
    """
    The unique 0 <= r < m1 * m2 with r = r1 mod m1 and r = r2 mod m2, moduli must be coprime.
    """
    return (r1 + m1 * ((r2 - r1) * mod_inverse(m1, m2) % m2)) % (m1 * m2)

def symmetric_mod(x : int, m : int) -> int:
    x %= m
    return x - m if x > m // 2 else x

# Bases sufficient for a deterministic answer below 3.3 * 10^24
_MILLER_RABIN_BASES = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41)

def is_prime(n : int) -> bool:
    if n < 2:
        return False
    for q in _MILLER_RABIN_BASES:
        if n % q == 0:
            return n == q
    d, s = n - 1, 0
    while d % 2 == 0:
        d //= 2
        s += 1
    for a in _MILLER_RABIN_BASES:
        x = pow(a, d, n)
        if x == 1 or x == n - 1:
            continue
        for _ in range(s - 1):
            x = x * x % n
            if x == n - 1:
                break
        else:
            return False
    return True

def next_prime(n : int) -> int:
    """
    Smallest prime >= n
    """
    n = max(n, 2)
    while not is_prime(n):
        n += 1
    return n

def primes_from(start : int):
    """
    Increasing primes >= start. Unbounded, consumers cap it with itertools.islice.
    """
    p = next_prime(start)
    while True:
        yield p
        p = next_prime(p + 1)

# Various useful primes
LARGEST_s32_PRIME = 2147483647
LARGEST_u16_PRIME = 65521
LARGEST_s16_PRIME = 32749

########################################################################################################################
#   Rational Numbers
########################################################################################################################

class Rational:
    def __init__(self, num, dnm):
        self.num = num
        self.dnm = dnm
        self.canonicalise()

    def tup(self):
        return self.num, self.dnm

    def __str__(self):
        if self.dnm == 1:
            return f"{self.num}"
        return f"{self.num}/{self.dnm}"

    def __repr__(self):
        return f"Rational({self.num}, {self.dnm})"

    def __hash__(self):
        if self.dnm == 1:
            return hash(self.num)
        return hash((self.num, self.dnm))

    def canonicalise(self):
        # For consistency, require denominator 1 when numerator is 0
        if self.num == 0:
            self.dnm = 1
            return
        # Check div0, denominator can be 0 only when numerator is 0
        if self.dnm == 0:
            raise ZeroDivisionError
        # Move sign out of the denominator
        if self.dnm < 0:
            self.dnm = -self.dnm
            self.num = -self.num
        # Remove common factors
        g = gcd(self.num, self.dnm)
        if g != 1:
            self.num //= g
            self.dnm //= g

    def cvt_other(self, other):
        if isinstance(other, int):
            other = Rational(other, 1)
        return other

    def __add__(self, other):
        other = self.cvt_other(other)
        return Rational(self.num * other.dnm + self.dnm * other.num, self.dnm * other.dnm)

    def __radd__(self, other):
        return self.__add__(other)

    def __sub__(self, other):
        other = self.cvt_other(other)
        return Rational(self.num * other.dnm - self.dnm * other.num, self.dnm * other.dnm)

    def __rsub__(self, other):
        other = self.cvt_other(other)
        return Rational(self.dnm * other.num - self.num * other.dnm, self.dnm * other.dnm)

    def __mul__(self, other):
        other = self.cvt_other(other)
        return Rational(self.num * other.num, self.dnm * other.dnm)

    def __rmul__(self, other):
        return self.__mul__(other)

    def __truediv__(self, other):
        other = self.cvt_other(other)
        return Rational(self.num * other.dnm, self.dnm * other.num)

    def __rtruediv__(self, other):
        other = self.cvt_other(other)
        return Rational(other.num * self.dnm, other.dnm * self.num)

    def __pow__(self, other):
        assert isinstance(other, int) and other >= 0
        return Rational(self.num ** other, self.dnm ** other)

    def __invert__(self):
        return Rational(self.dnm, self.num)

    def __neg__(self):
        return Rational(-self.num, self.dnm)

    def __abs__(self):
        return Rational(abs(self.num), self.dnm)

    def cmp(self, other, op):
        other = self.cvt_other(other)
        assert isinstance(other, Rational) , f"Comparing {type(self)} and {type(other)}"

        return op(self.num * other.dnm, other.num * self.dnm)

    def __eq__(self, other):
        if not isinstance(other, (int, Rational)):
            return NotImplemented
        other = self.cvt_other(other)
        return self.num == other.num and self.dnm == other.dnm

    def __lt__(self, other):
        return self.cmp(other, operator.lt)

    def __gt__(self, other):
        return self.cmp(other, operator.gt)

    def __le__(self, other):
        return self.cmp(other, operator.le)

    def __ge__(self, other):
        return self.cmp(other, operator.ge)

########################################################################################################################
#   Coefficient Rings
########################################################################################################################

# Attempts at drawing a random element outside a given set before giving up
MAX_DISTINCT_DRAWS = 1 << 12

class CoefficientRing:
    """
    A coefficient domain. Elements are plain python values and all arithmetic goes through the ring, so the same
    polynomial code runs over Z, Q, GF(p) and GF(p^k).
    """

    zero = 0
    one = 1

    def is_field(self) -> bool:
        return False

    def size(self) -> Optional[int]:
        """
        Cardinality of the ring, None if infinite
        """
        return None

    def characteristic(self) -> int:
        return 0

    def add(self, a, b):
        return a + b

    def sub(self, a, b):
        return a - b

    def mul(self, a, b):
        return a * b

    def neg(self, a):
        return -a

    def is_zero(self, a) -> bool:
        return a == self.zero

    def is_one(self, a) -> bool:
        return a == self.one

    def pow(self, a, n : int):
        assert n >= 0
        result = self.one
        while n:
            if n & 1:
                result = self.mul(result, a)
            n >>= 1
            if n:
                a = self.mul(a, a)
        return result

    def reciprocal(self, a):
        raise NotImplementedError()

    def divide_or_none(self, a, b):
        if self.is_zero(b):
            raise NotInvertible(f"division of {a} by zero in {self}")
        return self.mul(a, self.reciprocal(b))

    def divide_exact(self, a, b):
        q = self.divide_or_none(a, b)
        if q is None:
            raise NotDivisible(f"{a} is not divisible by {b} in {self}")
        return q

    def divmod(self, a, b):
        return self.divide_exact(a, b), self.zero

    def gcd(self, a, b):
        # every nonzero element of a field is a unit
        if self.is_zero(a) and self.is_zero(b):
            return self.zero
        return self.one

    def rand_elem(self, rnd=None):
        raise NotImplementedError()

    def rand_elem_distinct(self, existing, rnd=None):
        # Obtains a random element not in `existing`
        rnd = resolve(rnd)
        for _ in range(MAX_DISTINCT_DRAWS):
            r = self.rand_elem(rnd)
            if r not in existing:
                return r
        raise EvaluationStackExhausted(f"no random element of {self} outside of {len(existing)} excluded values")

    def extension(self, degree : int = 2, rnd=None):
        """
        An algebraic extension of strictly larger cardinality, or None when there is none to offer.
        """
        return None

    def is_rational(self):
        return isinstance(self, RationalField)

class IntegerRing(CoefficientRing):
    # Bit size of random integers, these only serve as evaluation points
    RANDOM_BITS = 16

    def __call__(self, arg):
        if isinstance(arg, int):
            return arg
        elif isinstance(arg, Rational) and arg.dnm == 1:
            return arg.num
        raise ValueError(f"{arg} cannot be a member of the integers")

    def __str__(self):
        return "The Integers"

    def __repr__(self):
        return "ZZ"

    def __eq__(self, other):
        return isinstance(other, IntegerRing)

    def __hash__(self):
        return hash("ZZ")

    def reciprocal(self, a):
        if a == 1 or a == -1:
            return a
        raise NotInvertible(f"{a} is not a unit of the integers")

    def divide_or_none(self, a, b):
        if b == 0:
            raise NotInvertible(f"division of {a} by zero in {self}")
        q, r = divmod(a, b)
        return q if r == 0 else None

    def divmod(self, a, b):
        return divmod(a, b)

    def gcd(self, a, b):
        return gcd(a, b)

    def rand_elem(self, rnd=None):
        bound = 1 << self.RANDOM_BITS
        return resolve(rnd).randint(-bound, bound)

ZZ = IntegerRing()

class RationalField(CoefficientRing):
    # Bounds are arbitrary, random rationals only serve as evaluation points
    RANDOM_BITS = 16

    zero = Rational(0, 1)
    one = Rational(1, 1)

    def __call__(self, arg):
        if isinstance(arg, Rational):
            return arg
        elif isinstance(arg, int):
            return Rational(arg, 1)
        else:
            raise ValueError(f"{arg} cannot be a member of a rational field")

    def __str__(self):
        return "The Rational Numbers"

    def __repr__(self):
        return "QQ"

    def __eq__(self, other):
        return isinstance(other, RationalField)

    def __hash__(self):
        return hash("QQ")

    def is_field(self):
        return True

    def is_zero(self, a):
        return a.num == 0

    def reciprocal(self, a):
        if a.num == 0:
            raise NotInvertible("0 has no reciprocal")
        return ~a

    def rand_elem(self, rnd=None):
        bound = 1 << self.RANDOM_BITS
        return Rational(resolve(rnd).randint(-bound, bound), 1)

QQ = RationalField()

class GF(CoefficientRing):
    """
    Arithmetic in GF(p), elements are the integers 0 <= x < p
    """

    def __init__(self, p : int):
        if not is_prime(p):
            raise ValueError(f"GF({p}): {p} is not prime")
        self.p = p
        self.inverses = {}

    def __repr__(self):
        return f"GF({self.p})"

    def __str__(self):
        return repr(self)

    def __eq__(self, other):
        if isinstance(other, GF):
            return self.p == other.p
        return False

    def __hash__(self):
        return hash(("GF", self.p))

    def __call__(self, arg):
        if isinstance(arg, int):
            return arg % self.p
        elif isinstance(arg, Rational):
            return arg.num * self.reciprocal(arg.dnm % self.p) % self.p
        else:
            raise ValueError(f"{arg} cannot be a member of a prime field")

    def is_field(self):
        return True

    def size(self):
        return self.p

    def characteristic(self):
        return self.p

    def add(self, a, b):
        r = a + b
        if r >= self.p:
            r -= self.p
        return r

    def sub(self, a, b):
        r = a - b
        if r < 0:
            r += self.p
        return r

    def mul(self, a, b):
        return a * b % self.p

    def neg(self, a):
        return self.p - a if a else 0

    def pow(self, a, n : int):
        return pow(a, n, self.p)

    def reciprocal(self, a):
        """
        Multiplicative inverse
        """
        if a == 0:
            raise NotInvertible("0 has no reciprocal")
        inv = self.inverses.get(a)
        if inv is None:
            inv = mod_inverse(a, self.p)
            self.inverses[a] = inv
        return inv

    def rand_elem(self, rnd=None):
        return resolve(rnd).randrange(self.p)

    def symmetric(self, a):
        return a - self.p if a > self.p // 2 else a

    def extension(self, degree : int = 2, rnd=None):
        from libpolygcd.extension_field import ExtensionField, random_irreducible

        return ExtensionField(self, random_irreducible(self, degree, rnd))

########################################################################################################################
#   Monomials
########################################################################################################################

# Monomials are exponent tuples, orders are key functions: a larger key is a larger monomial

def monomial_key_lex(m):
    return m

MonomialOrderLex = monomial_key_lex

def monomial_key_grlex(m):
    # first compare total degree, break ties with lex order
    return (sum(m), m)

MonomialOrderGrLex = monomial_key_grlex

def monomial_key_grevlex(m):
    # first compare total degree, break ties with reverse lex order
    return (sum(m), tuple(-d for d in reversed(m)))

MonomialOrderGRevLex = monomial_key_grevlex

def monomial_mul(m1, m2):
    return tuple(a + b for a,b in zip(m1, m2))

def monomial_div(m1, m2):
    """
    m1 / m2, or None if m2 does not divide m1
    """
    x = tuple(a - b for a,b in zip(m1, m2))
    if all(power >= 0 for power in x):
        return x
    return None

def monomial_divisible_by(m1, m2):
    return all(a >= b for a,b in zip(m1, m2))

def monomial_gcd(m1, m2):
    return tuple(min(i, j) for i,j in zip(m1, m2))

def monomial_lcm(m1, m2):
    return tuple(max(i, j) for i,j in zip(m1, m2))

########################################################################################################################
#   Polynomial Rings
########################################################################################################################

class PolynomialRing:
    def __init__(self, coeff_ring : CoefficientRing, var_names : List[str], order=MonomialOrderGRevLex):
        self.coeff_ring = coeff_ring
        self.var_names = list(var_names)
        self.n_vars = len(self.var_names)
        assert len(set(self.var_names)) == self.n_vars , "Variable names must be distinct"
        self.mon0 = (0,) * self.n_vars
        self.order = order
        self.variables_cached = None

    def to_coeff_ring(self, coeff_ring : CoefficientRing):
        if coeff_ring == self.coeff_ring:
            return self
        return PolynomialRing(coeff_ring, self.var_names, order=self.order)

    def __call__(self, element):
        if isinstance(element, Polynomial):
            if element.ring is self or element.ring == self:
                return element
            if element.ring.n_vars == self.n_vars:
                return element.set_coeff_ring(self.coeff_ring)
            raise DomainMismatch(f"{element.ring} cannot be converted to {self}")
        coeff = self.coeff_ring(element)
        if self.coeff_ring.is_zero(coeff):
            return Polynomial.ZERO(self)
        return Polynomial._make(self, {self.mon0 : coeff})

    def __eq__(self, other):
        if type(other) != PolynomialRing:
            return False
        return self.coeff_ring == other.coeff_ring and self.var_names == other.var_names and self.order == other.order

    def __hash__(self):
        return hash((self.coeff_ring, tuple(self.var_names)))

    def variables(self):
        # If already computed
        if self.variables_cached is not None:
            return self.variables_cached

        # Compute them
        variables = []
        for i in range(self.n_vars):
            degrees = [0] * self.n_vars
            degrees[i] = 1
            variables.append(Polynomial._make(self, {tuple(degrees) : self.coeff_ring.one}))
        self.variables_cached = tuple(variables)
        return self.variables_cached

    def zero(self):
        return Polynomial.ZERO(self)

    def one(self):
        return Polynomial.ONE(self)

    def __str__(self):
        return f"Polynomial Ring in {self.n_vars} variable(s) {self.var_names} over {self.coeff_ring}"

    def __repr__(self) -> str:
        return f"PolynomialRing({repr(self.coeff_ring)}, {repr(self.var_names)})"

########################################################################################################################
#   Polynomial
########################################################################################################################

def _sub_multiple(cr, terms, coeff, shift, items):
    """
    terms -= coeff * x^shift * items, in place
    """
    for m,c in items:
        mm = monomial_mul(m, shift)
        v = cr.sub(terms.get(mm, cr.zero), cr.mul(coeff, c))
        if cr.is_zero(v):
            terms.pop(mm, None)
        else:
            terms[mm] = v

class Polynomial:
    """
    Sparse multivariate polynomial: a map from exponent tuples to nonzero coefficients. Polynomials are never
    mutated after construction, every operation returns a new one.
    """

    def __init__(self, ring : PolynomialRing, terms=None):
        self.ring = ring
        self.terms = {}
        self._lm = None
        self._degrees = None
        if not terms:
            return
        cr = ring.coeff_ring
        items = terms.items() if isinstance(terms, dict) else terms
        for monomial,coeff in items:
            monomial = tuple(monomial)
            assert len(monomial) == ring.n_vars , "Degrees should match number of variables"
            assert all(deg >= 0 for deg in monomial) , f"Degrees should be nonnegative, got {monomial}"
            # Promote to member of coefficient ring
            coeff = cr(coeff)
            if monomial in self.terms:
                coeff = cr.add(self.terms[monomial], coeff)
            # Strip terms with coefficient 0
            if cr.is_zero(coeff):
                self.terms.pop(monomial, None)
            else:
                self.terms[monomial] = coeff

    @staticmethod
    def _make(ring, terms):
        # terms must already be canonical: nonzero ring elements keyed by exponent tuples
        p = Polynomial.__new__(Polynomial)
        p.ring = ring
        p.terms = terms
        p._lm = None
        p._degrees = None
        return p

    @staticmethod
    def ZERO(ring):
        return Polynomial._make(ring, {})

    @staticmethod
    def ONE(ring):
        return Polynomial._make(ring, {ring.mon0 : ring.coeff_ring.one})

    @staticmethod
    def monomial(ring, degrees, coeff=None):
        coeff = ring.coeff_ring.one if coeff is None else ring.coeff_ring(coeff)
        if ring.coeff_ring.is_zero(coeff):
            return Polynomial.ZERO(ring)
        return Polynomial._make(ring, {tuple(degrees) : coeff})

    def _check(self, other):
        if isinstance(other, Polynomial):
            if other.ring is not self.ring and other.ring != self.ring:
                raise DomainMismatch(f"{self.ring} and {other.ring} differ")
            return other
        return self.ring(other)

    def __len__(self):
        return len(self.terms)

    def __hash__(self):
        return hash(frozenset(self.terms.items()))

    def __eq__(self, other):
        if other is None:
            return False
        if not isinstance(other, Polynomial):
            other = self.ring(other)
        elif other.ring != self.ring:
            return False
        return self.terms == other.terms

    def is_zero(self):
        return len(self.terms) == 0

    def is_constant(self):
        return len(self.terms) == 0 or (len(self.terms) == 1 and self.ring.mon0 in self.terms)

    def is_one(self):
        return self.is_constant() and self.ring.coeff_ring.is_one(self.constant_coeff())

    def is_monomial(self):
        return len(self.terms) == 1

    def constant_coeff(self):
        return self.terms.get(self.ring.mon0, self.ring.coeff_ring.zero)

    def sorted_terms(self):
        """
        (monomial, coefficient) pairs, leading term first
        """
        order = self.ring.order
        return sorted(self.terms.items(), key=lambda t: order(t[0]), reverse=True)

    @property
    def monomials(self):
        return [m for m,_ in self.sorted_terms()]

    @property
    def coeffs(self):
        return [c for _,c in self.sorted_terms()]

    def __str__(self):
        cr = self.ring.coeff_ring
        terms = []
        for monomial,coeff in self.sorted_terms():
            mon_str = "*".join(f"{name}^{d}" if d != 1 else f"{name}"
                               for name,d in zip(self.ring.var_names, monomial) if d != 0)
            if len(mon_str) == 0:
                terms.append(f"{coeff}")
            elif cr.is_one(coeff):
                terms.append(mon_str)
            else:
                coeff_str = f"{coeff}"
                if " " in coeff_str or "+" in coeff_str:
                    coeff_str = f"({coeff_str})"
                terms.append(f"{coeff_str}*{mon_str}")

        if len(terms) == 0:
            return "0"

        return " + ".join(terms)

    def __repr__(self):
        return f"Polynomial({repr(self.ring)}, {repr(dict(self.sorted_terms()))})"

    def __getitem__(self, key):
        if isinstance(key, int):
            key = (key,)
        elif not isinstance(key, tuple):
            key = tuple(key)
        # return the coefficient of the monomial, or 0 if not present
        return self.terms.get(key, self.ring.coeff_ring.zero)

    def __call__(self, x):
        """
        Evaluates at the point x, one coordinate per variable
        """
        if not isiterable(x):
            x = (x,)
        assert len(x) == self.ring.n_vars
        cr = self.ring.coeff_ring
        x = [cr(xi) for xi in x]
        result = cr.zero
        for monomial,coeff in self.terms.items():
            v = coeff
            for xi,d in zip(x, monomial):
                if d != 0:
                    v = cr.mul(v, cr.pow(xi, d))
            result = cr.add(result, v)
        return result

    def eval_some(self, eval_map : Dict[int, object]):
        p = self
        for var,value in eval_map.items():
            p = p.evaluate(var, value)
        return p

    #
    #   Arithmetic
    #

    def __add__(self, other):
        other = self._check(other)
        cr = self.ring.coeff_ring
        if len(other.terms) > len(self.terms):
            self, other = other, self
        terms = dict(self.terms)
        for monomial,coeff in other.terms.items():
            if monomial in terms:
                s = cr.add(terms[monomial], coeff)
                if cr.is_zero(s):
                    del terms[monomial]
                else:
                    terms[monomial] = s
            else:
                terms[monomial] = coeff
        return Polynomial._make(self.ring, terms)

    def __radd__(self, other):
        return self.__add__(other)

    def __neg__(self):
        """
        Returns the additive inverse of this polynomial
        """
        neg = self.ring.coeff_ring.neg
        return Polynomial._make(self.ring, {m : neg(c) for m,c in self.terms.items()})

    def __sub__(self, other):
        return self + (-self._check(other))

    def __rsub__(self, other):
        return self._check(other) + (-self)

    def scale(self, factor):
        cr = self.ring.coeff_ring
        if cr.is_zero(factor):
            return Polynomial.ZERO(self.ring)
        if cr.is_one(factor):
            return self
        terms = {}
        for m,c in self.terms.items():
            v = cr.mul(c, factor)
            # zero divisors only exist over non-domains, guard anyway
            if not cr.is_zero(v):
                terms[m] = v
        return Polynomial._make(self.ring, terms)

    def __mul__(self, other):
        if not isinstance(other, Polynomial):
            return self.scale(self.ring.coeff_ring(other))
        other = self._check(other)

        if self.is_zero() or other.is_zero():
            # Multiplication where one is the 0 polynomial
            return Polynomial.ZERO(self.ring)
        if other.is_monomial():
            (m,c), = other.terms.items()
            return self.multiply_monomial(m, c)
        if self.is_monomial():
            (m,c), = self.terms.items()
            return other.multiply_monomial(m, c)

        cr = self.ring.coeff_ring
        terms = {}
        for m1,c1 in self.terms.items():
            for m2,c2 in other.terms.items():
                m = monomial_mul(m1, m2)
                c = cr.mul(c1, c2)
                if m in terms:
                    terms[m] = cr.add(terms[m], c)
                else:
                    terms[m] = c
        return Polynomial._make(self.ring, {m : c for m,c in terms.items() if not cr.is_zero(c)})

    def __rmul__(self, other):
        # Polynomial rings are commutative
        return self * other

    def __pow__(self, power : int):
        assert power >= 0
        result = Polynomial.ONE(self.ring)
        base = self
        while power:
            if power & 1:
                result = result * base
            power >>= 1
            if power:
                base = base * base
        return result

    def multiply_monomial(self, monomial, coeff=None):
        cr = self.ring.coeff_ring
        if coeff is not None and cr.is_zero(coeff):
            return Polynomial.ZERO(self.ring)
        if coeff is None or cr.is_one(coeff):
            return Polynomial._make(self.ring, {monomial_mul(m, monomial) : c for m,c in self.terms.items()})
        terms = {}
        for m,c in self.terms.items():
            v = cr.mul(c, coeff)
            if not cr.is_zero(v):
                terms[monomial_mul(m, monomial)] = v
        return Polynomial._make(self.ring, terms)

    def divide_monomial(self, monomial):
        terms = {}
        for m,c in self.terms.items():
            q = monomial_div(m, monomial)
            assert q is not None , f"{monomial} does not divide {m}"
            terms[q] = c
        return Polynomial._make(self.ring, terms)

    def divide_or_none(self, other):
        """
        The exact quotient self / other, or None if other does not divide self.
        """
        other = self._check(other)
        if other.is_zero():
            raise NotInvertible("division by the zero polynomial")
        if self.is_zero():
            return self
        cr = self.ring.coeff_ring

        if other.is_constant():
            c = other.constant_coeff()
            terms = {}
            for m,v in self.terms.items():
                q = cr.divide_or_none(v, c)
                if q is None:
                    return None
                terms[m] = q
            return Polynomial._make(self.ring, terms)

        if any(o > s for s,o in zip(self.degrees(), other.degrees())):
            return None

        if other.is_monomial():
            (m_o,c_o), = other.terms.items()
            terms = {}
            for m,v in self.terms.items():
                q_mon = monomial_div(m, m_o)
                if q_mon is None:
                    return None
                q = cr.divide_or_none(v, c_o)
                if q is None:
                    return None
                terms[q_mon] = q
            return Polynomial._make(self.ring, terms)

        order = self.ring.order
        lm_o = other.leading_monomial()
        lc_o = other.leading_coeff()
        items_o = list(other.terms.items())

        rem = dict(self.terms)
        quot = {}
        while rem:
            # the leading monomial of the remainder strictly decreases every step
            lm = max(rem, key=order)
            q_mon = monomial_div(lm, lm_o)
            if q_mon is None:
                return None
            q = cr.divide_or_none(rem[lm], lc_o)
            if q is None:
                return None
            quot[q_mon] = q
            _sub_multiple(cr, rem, q, q_mon, items_o)
        return Polynomial._make(self.ring, quot)

    def divide_exact(self, other):
        q = self.divide_or_none(other)
        if q is None:
            raise NotDivisible(f"{self} is not divisible by {other}")
        return q

    def is_divisible_by(self, other):
        return self.divide_or_none(other) is not None

    def divide(self, divisors):
        """
        Multivariate division with remainder: self = sum(q_i * d_i) + r where no term of r is divisible by the
        leading monomial of any d_i.
        """
        divisors = [self._check(div) for div in divisors]
        if any(div.is_zero() for div in divisors):
            raise ZeroDivisionError

        cr = self.ring.coeff_ring
        order = self.ring.order
        lead = [(div.leading_monomial(), div.leading_coeff(), list(div.terms.items())) for div in divisors]

        p = dict(self.terms)
        quots = [{} for _ in divisors]
        r = {}

        while p:
            LM_p = max(p, key=order)
            LC_p = p[LM_p]

            for i,(LM_i,LC_i,items_i) in enumerate(lead):
                q_mon = monomial_div(LM_p, LM_i)
                if q_mon is None:
                    continue
                q = cr.divide_or_none(LC_p, LC_i)
                if q is None:
                    continue
                quots[i][q_mon] = q
                _sub_multiple(cr, p, q, q_mon, items_i)
                break
            else:
                r[LM_p] = LC_p
                del p[LM_p]

        return [Polynomial._make(self.ring, q) for q in quots], Polynomial._make(self.ring, r)

    def divmod(self, other):
        quots, rem = self.divide([other])
        return quots[0], rem

    def __floordiv__(self, other):
        return self.divmod(other)[0]

    def __mod__(self, other):
        return self.divmod(other)[1]

    def S_polynomial(self, other):
        if self.is_zero() or other.is_zero():
            return Polynomial.ZERO(self.ring)
        cr = self.ring.coeff_ring
        LCM = monomial_lcm(self.leading_monomial(), other.leading_monomial())
        s_f = self.multiply_monomial(monomial_div(LCM, self.leading_monomial()), cr.reciprocal(self.leading_coeff()))
        s_g = other.multiply_monomial(monomial_div(LCM, other.leading_monomial()),
                                      cr.reciprocal(other.leading_coeff()))
        return s_f - s_g

    #
    #   Structure
    #

    def leading_monomial(self):
        if self.is_zero():
            return self.ring.mon0
        if self._lm is None:
            self._lm = max(self.terms, key=self.ring.order)
        return self._lm

    def leading_coeff(self):
        if self.is_zero():
            return self.ring.coeff_ring.zero
        return self.terms[self.leading_monomial()]

    def leading_term(self):
        if self.is_zero():
            return self
        return Polynomial._make(self.ring, {self.leading_monomial() : self.leading_coeff()})

    # short aliases
    def lm(self):
        return self.leading_monomial()

    def lc(self):
        return self.leading_coeff()

    def degrees(self) -> Tuple[int, ...]:
        """
        Degree in each variable
        """
        if self._degrees is None:
            degs = [0] * self.ring.n_vars
            for m in self.terms:
                for i,d in enumerate(m):
                    if d > degs[i]:
                        degs[i] = d
            self._degrees = tuple(degs)
        return self._degrees

    def degree(self, var : int = None) -> int:
        """
        Total degree, or the degree in `var` if given
        """
        if var is not None:
            return self.degrees()[var]
        return max((sum(m) for m in self.terms), default=0)

    def monomial_content(self):
        if self.is_zero():
            return self.ring.mon0
        return reduce(monomial_gcd, self.terms)

    def content(self):
        """
        GCD of the coefficients, positive over Z. Over a field every nonzero element is a unit.
        """
        cr = self.ring.coeff_ring
        if self.is_zero():
            return cr.zero
        if cr.is_field():
            return cr.one
        return reduce(cr.gcd, self.terms.values())

    def primitive_part(self):
        """
        Over Z: divided by the content, with positive leading coefficient. Over a field: monic.
        """
        if self.is_zero():
            return self
        cr = self.ring.coeff_ring
        if cr.is_field():
            return self.monic()
        c = self.content()
        if self.leading_coeff() < 0:
            c = -c
        if cr.is_one(c):
            return self
        return Polynomial._make(self.ring, {m : cr.divide_exact(v, c) for m,v in self.terms.items()})

    def monic(self, factor=None):
        """
        Scales so that the leading coefficient is `factor` (1 by default)
        """
        if self.is_zero():
            return self
        cr = self.ring.coeff_ring
        factor = cr.one if factor is None else factor
        return self.scale(cr.divide_exact(factor, self.leading_coeff()))

    def skeleton(self):
        return frozenset(self.terms)

    def same_skeleton(self, other):
        return self.terms.keys() == other.terms.keys()

    def set_all_coefficients_to_unit(self):
        one = self.ring.coeff_ring.one
        return Polynomial._make(self.ring, {m : one for m in self.terms})

    def set_coeff_ring(self, coeff_ring : CoefficientRing):
        """
        The same polynomial with coefficients mapped into another coefficient ring
        """
        ring = self.ring.to_coeff_ring(coeff_ring)
        terms = {}
        for m,c in self.terms.items():
            v = coeff_ring(c)
            if not coeff_ring.is_zero(v):
                terms[m] = v
        return Polynomial._make(ring, terms)

    def rename_variables(self, permutation):
        """
        Renames variables, new variable i is old variable permutation(i)
        """
        return Polynomial._make(self.ring, {permutation.permute(m) : c for m,c in self.terms.items()})

    #
    #   Evaluation
    #

    def evaluate(self, var : int, value):
        """
        Substitutes `value` for variable `var`, the result lives in the same ring with `var` absent
        """
        cr = self.ring.coeff_ring
        value = cr(value)
        powers = {}
        terms = {}
        for m,c in self.terms.items():
            d = m[var]
            if d != 0:
                if d not in powers:
                    powers[d] = cr.pow(value, d)
                c = cr.mul(c, powers[d])
                m = m[:var] + (0,) + m[var + 1:]
            if m in terms:
                terms[m] = cr.add(terms[m], c)
            else:
                terms[m] = c
        return Polynomial._make(self.ring, {m : c for m,c in terms.items() if not cr.is_zero(c)})

    def evaluate_powers(self, powers, variables, raise_factors):
        """
        Substitutes point[j]^raise_factors[j] for each variables[j], where point[j] powers are cached by `powers`
        """
        cr = self.ring.coeff_ring
        terms = {}
        for m,c in self.terms.items():
            new_m = None
            for j,var in enumerate(variables):
                d = m[var]
                if d != 0:
                    c = cr.mul(c, powers.pow(j, raise_factors[j] * d))
                    if new_m is None:
                        new_m = list(m)
                    new_m[var] = 0
            if new_m is not None:
                m = tuple(new_m)
            if m in terms:
                terms[m] = cr.add(terms[m], c)
            else:
                terms[m] = c
        return Polynomial._make(self.ring, {m : c for m,c in terms.items() if not cr.is_zero(c)})

    def coefficient_of(self, var : int, degree : int):
        """
        Coefficient of var^degree, as a polynomial with `var` absent
        """
        return Polynomial._make(self.ring, {m[:var] + (0,) + m[var + 1:] : c
                                            for m,c in self.terms.items() if m[var] == degree})

    #
    #   Univariate views
    #

    def as_univariate(self, var : int = None):
        """
        Dense univariate polynomial, all variables other than `var` must be absent
        """
        from libpolygcd.univariate import UnivariatePolynomial

        if var is None:
            present = [i for i,d in enumerate(self.degrees()) if d != 0]
            assert len(present) <= 1 , "Polynomial is not univariate"
            var = present[0] if present else 0
        cr = self.ring.coeff_ring
        coeffs = [cr.zero] * (self.degree(var) + 1)
        for m,c in self.terms.items():
            assert all(d == 0 for i,d in enumerate(m) if i != var) , "Polynomial is not univariate"
            coeffs[m[var]] = c
        return UnivariatePolynomial(cr, coeffs)

    def as_over_univariate(self, var : int):
        """
        View as a polynomial in the other variables with coefficients that are univariate polynomials in `var`.
        Keys are monomials with `var` zeroed.
        """
        from libpolygcd.univariate import UnivariatePolynomial

        cr = self.ring.coeff_ring
        dense = {}
        for m,c in self.terms.items():
            key = m[:var] + (0,) + m[var + 1:]
            if key not in dense:
                dense[key] = {}
            dense[key][m[var]] = c
        result = {}
        for key,coeffs in dense.items():
            lst = [cr.zero] * (max(coeffs) + 1)
            for d,c in coeffs.items():
                lst[d] = c
            result[key] = UnivariatePolynomial(cr, lst)
        return result

    def leading_key(self, over_univariate):
        """
        Leading monomial among the keys of an `as_over_univariate` view
        """
        return max(over_univariate, key=self.ring.order)

    @staticmethod
    def from_over_univariate(ring : PolynomialRing, var : int, mapping):
        terms = {}
        for key,upoly in mapping.items():
            for d,c in enumerate(upoly.coeffs):
                if not ring.coeff_ring.is_zero(c):
                    terms[key[:var] + (d,) + key[var + 1:]] = c
        return Polynomial._make(ring, terms)

    @staticmethod
    def from_univariate(ring : PolynomialRing, upoly, var : int):
        return Polynomial.from_over_univariate(ring, var, {ring.mon0 : upoly})

    def multiply_by_univariate(self, upoly, var : int):
        """
        self * upoly(x_var), `var` must be absent from self
        """
        return self * Polynomial.from_univariate(self.ring, upoly, var)

########################################################################################################################
#   Unit Tests
########################################################################################################################

import random
import unittest

class TestGCD(unittest.TestCase):

    def test_gcd(self):
        self.assertEqual(gcd(4, 3), 1)
        self.assertEqual(gcd(12, 3), 3)
        self.assertEqual(gcd(21, 9), 3)
        self.assertEqual(gcd(12, 4), 4)
        self.assertEqual(gcd(49, 7), 7)
        self.assertEqual(gcd(1, 2), 1)
        self.assertEqual(gcd(1, -2), gcd(1, 2))
        self.assertEqual(gcd(-1, 2), gcd(1, 2))
        self.assertEqual(gcd(-1, -2), gcd(1, 2))

    def test_xgcd(self):
        self.assertEqual(xgcd(30, 18), (6, -1, 2))
        self.assertEqual(xgcd(18, 30), (6, 2, -1))
        self.assertEqual(xgcd(2, -1), (-1, 0, 1))

    def test_crt(self):
        self.assertEqual(crt(2, 3, 3, 5), 8)
        r = crt(-1 % 65521, 65521, -1 % 509, 509)
        self.assertEqual(symmetric_mod(r, 65521 * 509), -1)

    def test_primes(self):
        self.assertEqual([p for p in range(30) if is_prime(p)], [2, 3, 5, 7, 11, 13, 17, 19, 23, 29])
        self.assertTrue(is_prime(LARGEST_u16_PRIME))
        self.assertTrue(is_prime(LARGEST_s32_PRIME))
        self.assertFalse(is_prime(4294967295))
        self.assertEqual(next_prime(66), 67)
        gen = primes_from(1031)
        self.assertEqual([next(gen) for _ in range(3)], [1031, 1033, 1039])

class TestGF(unittest.TestCase):

    def test_arithmetic(self):
        rnd = random.Random(1)
        for p in (2, 3, 67, 65521):
            F = GF(p)
            for _ in range(200):
                x1 = rnd.randint(-70000, 70000)
                x2 = rnd.randint(-70000, 70000)
                self.assertEqual(F(x1), x1 % p)
                self.assertEqual(F.add(F(x1), F(x2)), (x1 + x2) % p)
                self.assertEqual(F.sub(F(x1), F(x2)), (x1 - x2) % p)
                self.assertEqual(F.mul(F(x1), F(x2)), (x1 * x2) % p)
                self.assertEqual(F.neg(F(x1)), (-x1) % p)

    def test_inversion(self):
        rnd = random.Random(2)
        ps = [65413, 65419, 65423, 65437, 65447, 65449, 65479, 65497, 65519, 65521]
        for p in ps:
            F = GF(p)
            x = rnd.randint(2, p - 1)
            ix = F.reciprocal(x)
            self.assertEqual(F.mul(x, ix), 1)
            self.assertEqual(F.reciprocal(ix), x)
        with self.assertRaises(NotInvertible):
            GF(7).reciprocal(0)
        self.assertEqual(GF(7).divide_or_none(3, 5), 2)
        with self.assertRaises(NotInvertible):
            GF(7).divide_or_none(3, 0)

    def test_rational(self):
        F = GF(65521)
        self.assertEqual(F.mul(F(Rational(7, 5)), 5), 7)
        self.assertEqual(F(Rational(-1, 1)), 65520)

    def test_not_prime(self):
        with self.assertRaises(ValueError):
            GF(65)

class TestIntegers(unittest.TestCase):

    def test_division(self):
        self.assertEqual(ZZ.divide_or_none(12, 4), 3)
        self.assertIsNone(ZZ.divide_or_none(12, 5))
        with self.assertRaises(NotDivisible):
            ZZ.divide_exact(7, 2)
        with self.assertRaises(NotInvertible):
            ZZ.divide_or_none(7, 0)
        self.assertEqual(ZZ.reciprocal(-1), -1)
        with self.assertRaises(NotInvertible):
            ZZ.reciprocal(2)
        self.assertFalse(ZZ.is_field())
        self.assertIsNone(ZZ.size())
        self.assertIsNone(ZZ.extension())

class TestRational(unittest.TestCase):

    def test_conversion(self):
        self.assertEqual(Rational(0, 0).tup(), (0, 1))
        self.assertEqual(Rational(6, 3).tup(), (2, 1))
        self.assertEqual(Rational(7*4, 3*4).tup(), (7, 3))

    def test_addition(self):
        self.assertEqual((Rational(1, 3) + Rational(1, 3)).tup(), (2, 3))
        self.assertEqual((Rational(4, 5) + Rational(6, 7)).tup(), (58, 35))
        self.assertEqual((Rational(3, 6) + Rational(3, 4)).tup(), (5, 4))
        self.assertEqual((Rational(7, 8) + Rational(5, 6)).tup(), (41, 24))
        self.assertEqual((Rational(4, 3) + Rational(6, 3)).tup(), (10, 3))

    def test_multiplication(self):
        self.assertEqual((Rational(1, 3) * Rational(9, 7)).tup(), (3, 7))
        self.assertEqual((Rational(4, 5) * Rational(12, 11)).tup(), (48, 55))
        self.assertEqual((Rational(3, 2) * Rational(-1, 2)).tup(), (-3, 4))

    def test_inversion(self):
        self.assertEqual((~Rational(2, 3)).tup(), (3, 2))
        self.assertEqual((~Rational(2, -3)).tup(), (-3, 2))

        with self.assertRaises(ZeroDivisionError):
            ~Rational(0, 0)
        with self.assertRaises(NotInvertible):
            QQ.reciprocal(QQ(0))

    def test_division(self):
        self.assertEqual((Rational(2, 3) / Rational(3, 4)).tup(), (8, 9))
        self.assertEqual((Rational(3, 5) / Rational(8, 7)).tup(), (21, 40))
        self.assertEqual((Rational(0, 1) / Rational(4, 1)).tup(), (0, 1))

    def test_ordering(self):
        self.assertLess(Rational(5, 3), Rational(7, 4))

    def test_hash(self):
        self.assertEqual(len({Rational(1, 2), Rational(2, 4), Rational(3, 1)}), 2)

class TestMonomialOrders(unittest.TestCase):

    def test_orders(self):
        mons = [(2, 0, 0), (0, 3, 0), (1, 1, 1), (0, 0, 1), (1, 0, 2)]
        self.assertEqual(max(mons, key=MonomialOrderLex), (2, 0, 0))
        self.assertEqual(max(mons, key=MonomialOrderGrLex), (1, 1, 1))
        # x*y*z > x*z^2 in grevlex since the smaller power of the last variable wins
        self.assertEqual(max(mons, key=MonomialOrderGRevLex), (0, 3, 0))
        self.assertGreater(MonomialOrderGRevLex((1, 1, 1)), MonomialOrderGRevLex((1, 0, 2)))

    def test_helpers(self):
        self.assertEqual(monomial_div((2, 1), (1, 1)), (1, 0))
        self.assertIsNone(monomial_div((2, 0), (1, 1)))
        self.assertEqual(monomial_lcm((2, 0, 1), (1, 3, 0)), (2, 3, 1))
        self.assertEqual(monomial_gcd((2, 0, 1), (1, 3, 1)), (1, 0, 1))

class TestPolynomial(unittest.TestCase):

    def setUp(self):
        self.R = PolynomialRing(GF(65521), "xyz")

    def test_arithmetic(self):
        x,y,z = self.R.variables()
        p = (x + y) * (x - y)
        self.assertEqual(p, x**2 - y**2)
        self.assertEqual(p - p, 0)
        self.assertTrue((p - p).is_zero())
        self.assertEqual(3 * x - x, 2 * x)
        self.assertEqual((x + 1)**3, x**3 + 3*x**2 + 3*x + 1)
        self.assertEqual(len(x*y + z + 1), 3)
        self.assertEqual((x*y + z)[(1, 1, 0)], 1)
        self.assertEqual((x*y + z)[(1, 0, 0)], 0)
        self.assertFalse(p == None)
        self.assertNotEqual(x, None)

    def test_structure(self):
        x,y,z = self.R.variables()
        p = 3*x**2*y + 5*x*y*z**2 + 7
        # grevlex: total degree 4 wins
        self.assertEqual(p.leading_monomial(), (1, 1, 2))
        self.assertEqual(p.leading_coeff(), 5)
        self.assertEqual(p.degrees(), (2, 1, 2))
        self.assertEqual(p.degree(), 4)
        self.assertEqual(p.degree(0), 2)
        self.assertEqual((x**2*y + x*y**3).monomial_content(), (1, 1, 0))
        self.assertEqual(p.monic().leading_coeff(), 1)
        self.assertTrue(self.R(5).is_constant())
        self.assertTrue(self.R(1).is_one())

    def test_evaluation(self):
        x,y,z = self.R.variables()
        p = x**2*y + y*z + 4
        self.assertEqual(p.evaluate(1, 2), 2*x**2 + 2*z + 4)
        self.assertEqual(p((1, 2, 3)), 12)
        self.assertEqual(p.eval_some({0 : 1, 2 : 3}), 4*y + 4)
        self.assertEqual(p.coefficient_of(1, 1), x**2 + z)
        self.assertEqual(p.coefficient_of(1, 0), self.R(4))

    def test_univariate_views(self):
        x,y,z = self.R.variables()
        p = x**2*y + 3*y + x*z**2 + z
        over = p.as_over_univariate(0)
        self.assertEqual(set(over), {(0, 1, 0), (0, 0, 2), (0, 0, 1)})
        self.assertEqual(over[(0, 1, 0)].coeffs, [3, 0, 1])
        self.assertEqual(Polynomial.from_over_univariate(self.R, 0, over), p)
        u = (x**3 + 2*x).as_univariate()
        self.assertEqual(u.coeffs, [0, 2, 0, 1])
        self.assertEqual(Polynomial.from_univariate(self.R, u, 2), z**3 + 2*z)

    def test_exact_division(self):
        x,y,z = self.R.variables()
        a = x**2 + x*y + z
        b = y*z - x + 3
        self.assertEqual((a * b).divide_exact(b), a)
        self.assertEqual((a * b).divide_or_none(a), b)
        self.assertIsNone((a * b + 1).divide_or_none(a))
        self.assertIsNone(a.divide_or_none(x*y*z))
        self.assertEqual((a * x*y).divide_or_none(x*y), a)
        with self.assertRaises(NotInvertible):
            a.divide_or_none(self.R.zero())
        self.assertEqual((a * 5).divide_exact(self.R(5)), a)
        with self.assertRaises(NotDivisible):
            a.divide_exact(b)

    def test_division_with_remainder(self):
        x,y,z = self.R.variables()
        f = x**2*y + x*y**2 + y**2
        f1 = x*y - 1
        f2 = y**2 - 1
        (q1,q2), r = f.divide([f1, f2])
        self.assertEqual(q1 * f1 + q2 * f2 + r, f)
        for m in r.terms:
            self.assertFalse(monomial_divisible_by(m, f1.leading_monomial()))
            self.assertFalse(monomial_divisible_by(m, f2.leading_monomial()))

    def test_integer_content(self):
        R = PolynomialRing(ZZ, "xy")
        x,y = R.variables()
        p = -6*x**2*y + 4*y - 10
        self.assertEqual(p.content(), 2)
        self.assertEqual(p.primitive_part(), 3*x**2*y - 2*y + 5)
        self.assertEqual(p.set_coeff_ring(GF(7)), PolynomialRing(GF(7), "xy")(p))

    def test_domain_mismatch(self):
        x,_,_ = self.R.variables()
        u, = PolynomialRing(GF(509), "x").variables()
        with self.assertRaises(DomainMismatch):
            x + u
