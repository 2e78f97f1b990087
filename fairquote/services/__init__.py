"""
Services module for fairquote.

Contains the business logic of the price-fairness engine.
"""
