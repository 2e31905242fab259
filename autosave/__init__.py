"""
Firefly Autosave - Source Package

Round-up savings for a Firefly III ledger: every qualifying withdrawal
is rounded up to a configured unit and the difference is moved into a
savings account with a linked transfer.

DESIGN PRINCIPLES:
1. Decisions are pure, writes are explicit
2. Fail early, fail visibly
3. Exactly one autosave per withdrawal, across any number of runs
4. Every decision is logged
"""

__version__ = "1.0.0"
