"""
Daily summary metrics for converted survey series.

Turns a gap-filled date x taxon table into rows with per-day totals, unique
and newly seen taxa, and running cumulative counts.
"""
