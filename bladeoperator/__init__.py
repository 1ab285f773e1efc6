"""Core of a chaos experiment operator: resource types, reconciliation, pod mutation and file-system faults."""

__version__ = "0.10.0"