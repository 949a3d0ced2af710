"""Equipment tracker: systems of field equipment, swaps, checkouts and repairs."""

__version__ = "0.1.0"
