"""csvcalc -- resolve single-step cell formulas in delimited tables."""

__version__ = "0.1.0"
