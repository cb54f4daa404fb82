"""covtree: llvm-cov export aggregation into a navigable coverage tree."""

__version__ = "0.1.0"
