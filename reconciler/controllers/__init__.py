"""
Reconciler Controllers

Outer surfaces over the reconciliation engine.
"""
