"""
Columnar model: fixed per-format fields, dynamic attribute columns and the batch builders that combine them.
"""
