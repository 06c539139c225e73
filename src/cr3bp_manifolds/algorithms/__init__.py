"""
Algorithms for the Circular Restricted Three-Body Problem: core invariants,
dynamics, periodic orbits and invariant manifolds.
"""
