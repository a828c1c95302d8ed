"""
Generic utility functions shared across modules.

Includes clock abstractions for timing and lenient numeric parsing helpers.
"""
