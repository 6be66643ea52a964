"""
Finance Tracker - Source Package

A personal finance tracking API for recording expenses,
recurring bills and savings goals.

DESIGN PRINCIPLES:
1. Every record belongs to exactly one user
2. Fail early, fail visibly (validate before any write)
3. Derived values are computed on read, never stored
4. Every lifecycle change is a single atomic update
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
