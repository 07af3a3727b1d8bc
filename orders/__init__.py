"""
Orders module - the purchase side of licensing.

This module handles:
- Product entity (activation limit, license duration, subscription flag)
- Order entity and completion
- Order lookup for webhook license resolution
"""
