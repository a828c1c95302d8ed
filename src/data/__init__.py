"""
Data I/O, column contracts, and CSV parsing for SUBCAM files.

Handles splitting raw observation exports (standard and _raw2 layouts),
naming the raw and converted columns, and reading and writing CSV files.
"""
