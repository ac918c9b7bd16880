"""
bip: a minimal durable job queue.

Producers submit opaque binary work items, a dispatcher hands out one ready
job per request, and consumers report named results before marking the job done.
"""

__version__ = "1.0.0"
