"""
Hierarchy Domain - Lot / Ouvrage / Bloc numbering.

Designations are human-facing ordinal labels ("1", "1.2") recomputed
for siblings after every structural change.
"""
