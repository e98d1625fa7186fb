"""Symbol tables, three-address code and Tiny assembly generation, plus a Tiny simulator."""

__version__ = "0.1.0"