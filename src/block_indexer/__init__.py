"""
Blockchain full-node indexer.

Keeps block, transaction and address indexes in step with the canonical
chain: the connected branch with the most cumulative proof-of-work.
"""
