"""
LinkLoom: bookmark link checking and categorization.

Both stages run on one bounded-concurrency engine: at most K units in
flight, one outcome per unit, and no bookmark lost to a failing unit.
"""

__version__ = "1.0.0"
