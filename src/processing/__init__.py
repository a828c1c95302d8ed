"""
Row-level pipeline stages: normalization, quality filtering, reduction, and
daily aggregation.

Each stage is a pure function from the previous stage's output to a new
structure; nothing here performs I/O or keeps state between calls.
"""
