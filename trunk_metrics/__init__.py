"""Trunk-based delivery metrics: DORA metrics from commits and CI workflow runs."""

__version__ = "0.1.0"
