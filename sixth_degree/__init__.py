"""
Sixth Degree - shortest connection finder

This package finds the shortest chain of directed connections between two
people using breadth-first search over an in-memory snapshot of the graph.
"""

__version__ = "1.0.0"
