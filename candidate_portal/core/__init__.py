"""
Core domain logic - no framework dependencies.
"""
