"""
fairquote - vehicle-service price-fairness engine.

Judges shop quotes for maintenance work as fair, overpriced or unknown,
and learns typical prices from the quotes users submit.
"""

__version__ = "1.0.0"
