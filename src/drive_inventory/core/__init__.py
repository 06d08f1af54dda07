"""
Core crawl engine: classification, aggregation, checkpointing and scheduling.
"""
