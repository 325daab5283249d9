#!/usr/bin/env python3
#
#   Permutations of variable indices
#

class Permutation:
    """
    A permutation of 0..n-1. Constructed from a dict (1:1 mapping), a list of images (i maps to p[i]), or a tuple
    in cycle notation (a single cycle or a tuple of cycles).
    """

    def __init__(self, p, n=None):
        if type(p) == dict: # 1:1 mapping
            self.map = p.copy()
        elif type(p) == list: # images
            self.map = dict(enumerate(p))
        elif type(p) == tuple: # cyclic
            self.map = {}
            def map_single_cyc(q):
                self.map.update({ e : q[i % len(q)] for i,e in enumerate(q, 1) })
            if len(p) != 0 and type(p[0]) == tuple:
                for t in p:
                    map_single_cyc(t)
            else:
                map_single_cyc(p)
        else:
            raise TypeError()

        self.n = n if n is not None else (max(self.map) + 1 if self.map else 0)
        assert sorted(self.map.values()) == sorted(self.map) , "Not a permutation"

    @staticmethod
    def identity(n):
        return Permutation(list(range(n)))

    @staticmethod
    def sorting(keys, reverse=False):
        """
        The permutation listing positions of `keys` in sorted order, ties keep their original order
        """
        return Permutation(sorted(range(len(keys)), key=lambda i: keys[i], reverse=reverse))

    def __call__(self, i):
        if not isinstance(i, int):
            raise TypeError()
        return self.map.get(i, i)

    def __eq__(self, p):
        if not isinstance(p, Permutation):
            return False
        return all(self(i) == p(i) for i in set(self.map) | set(p.map))

    def __hash__(self):
        return hash(tuple(sorted((k, v) for k,v in self.map.items() if k != v)))

    def __iter__(self):
        for k,v in self.map.items():
            yield k,v

    def inverse(self):
        return Permutation({ v : k for k,v in self.map.items() }, self.n)

    def is_identity(self):
        return all(k == v for k,v in self)

    def permute(self, seq):
        """
        Element i of the result is seq[self(i)]
        """
        return tuple(seq[self(i)] for i in range(len(seq)))

    def cyc_for(self, n):
        """
        Get cycle for which element n is first
        """
        cyc = [n]
        k = self.map[n]
        while k != n:
            cyc.append(k)
            k = self.map[k]
        return cyc

    def cyc(self):
        """
        Get all cycles for this permutation
        """
        cycles = []
        # Generate cycles
        for k,_ in self:
            cycles.append(self.cyc_for(k))
        # Rotate cycles for smallest element first while preserving order
        for cyc in cycles:
            while any([cyc[i] < cyc[0] for i in range(len(cyc))]):
                e = cyc[0]
                del cyc[0]
                cyc.append(e)
        # Deduplicate cycles and return
        return sorted(map(list, set(map(tuple, cycles))))

    def cyc_str(self):
        """
        Produces cycle notation for this permutation
        """
        nontrivial_cycles = [cyc for cyc in self.cyc() if len(cyc) > 1]
        if len(nontrivial_cycles) > 0:
            return "(" + ")(".join([",".join([f"{e}" for e in cyc]) for cyc in nontrivial_cycles]) + ")"
        return "(IDENT)"

    def __str__(self):
        return str(self.map)

    def __repr__(self):
        return f"Permutation({self.map})"

########################################################################################################################
#   Unit Tests
########################################################################################################################

import unittest

class TestPermutation(unittest.TestCase):

    def test_construction(self):
        p = Permutation([2, 0, 1])
        self.assertEqual(p, Permutation((0, 2, 1)))
        self.assertEqual(p, Permutation({0 : 2, 1 : 0, 2 : 1}))
        self.assertEqual(p.cyc_str(), "(0,2,1)")
        self.assertEqual(Permutation.identity(4).cyc_str(), "(IDENT)")
        self.assertEqual(Permutation(((0, 1), (2, 3))).cyc(), [[0, 1], [2, 3]])

    def test_permute(self):
        p = Permutation([2, 0, 1])
        self.assertEqual(p.permute(("a", "b", "c")), ("c", "a", "b"))
        self.assertEqual(p.inverse().permute(p.permute(("a", "b", "c"))), ("a", "b", "c"))
        self.assertTrue((Permutation([1, 0]).inverse()).inverse() == Permutation([1, 0]))

    def test_sorting(self):
        bounds = [1, 5, 3, 5]
        p = Permutation.sorting(bounds, reverse=True)
        self.assertEqual(p.permute(bounds), (5, 5, 3, 1))
        self.assertEqual(p.permute((0, 1, 2, 3)), (1, 3, 2, 0))
