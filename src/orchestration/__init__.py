"""
Conversion orchestration and run reporting.

Sequences parsing, normalization, filtering, aggregation, summarizing and
validation into one call that always returns a structured result.
"""
