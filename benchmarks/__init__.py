"""
Benchmark suite for jsontree parsing and serialization.

Compares jsontree against the standard library json module, orjson and
ujson, and measures the memory a parsed document tree costs.
"""
