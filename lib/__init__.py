"""Moray store clients shared by the benchmarks."""
