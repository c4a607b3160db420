"""Use-case layer: classification, retry, recovery, and session upkeep.

Each module coordinates domain objects and ports without performing transport
I/O directly, preserving MVVM + Hexagonal boundaries.
"""
