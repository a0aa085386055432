"""Alignment chart: place social profiles on a lawful/chaotic, good/evil grid."""

__version__ = "1.0.0"
