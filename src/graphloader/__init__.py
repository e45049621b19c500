"""
graphloader: partitioned bulk loading of tabular data into a graph database.

Rows are turned into edge and vertex records, grouped into batches and
written under a rate limit with checkpointed, resumable progress.
"""

__version__ = "0.1.0"
