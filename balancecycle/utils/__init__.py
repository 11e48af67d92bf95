"""Utility helpers for BalanceCycle."""
