"""Reconcile, predicate and admission handlers."""
