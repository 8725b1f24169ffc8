"""
Plain record containers produced by the readers in ``bioarrow.io`` and consumed by the batch builders.
"""
