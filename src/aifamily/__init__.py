"""aifamily - per-family-member memory engine with memory-augmented generation."""

__version__ = "1.0.0"
