#!/usr/bin/env python3
#
#   Exceptions raised by the polynomial arithmetic and GCD routines
#

class PolynomialError(ArithmeticError):
    pass

class DomainMismatch(PolynomialError, ValueError):
    """
    Operands live in different polynomial rings or over different coefficient domains.
    """
    pass

class NotAField(PolynomialError, TypeError):
    """
    A routine that requires field coefficients was handed a ring that is not a field.
    """
    pass

class NotDivisible(PolynomialError):
    pass

class NotInvertible(PolynomialError, ZeroDivisionError):
    pass

class SparseInterpolationExhausted(PolynomialError):
    pass

class EvaluationStackExhausted(PolynomialError):
    """
    Every evaluation point, prime or extension field that could be tried has been used up without producing
    a validated result.
    """
    pass
