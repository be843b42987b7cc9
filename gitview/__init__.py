"""
gitview - concurrency-safe, cache-coherent access to git for interactive tools.
"""

__version__ = "0.1.0"
