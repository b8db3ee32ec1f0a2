"""Task supervisor: adaptive strategy selection and hierarchical task execution."""

__version__ = "0.1.0"
