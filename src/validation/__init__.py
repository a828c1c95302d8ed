"""
Structural validation of raw observation logs and converted daily files.

Validators collect problems into a ValidationResult instead of raising, and
never modify the rows they are given.
"""
