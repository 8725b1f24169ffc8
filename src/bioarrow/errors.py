"""
Exception hierarchy shared by readers, indexes, builders and scanners.

Configuration errors (``InvalidInputError``) and data-contract errors (``TypeMismatchError``) are raised immediately.
Parse and index errors (``ParserError``, ``IndexLookupError``) terminate the iterator that raised them.
"""


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class BioArrowError(Exception):
    """Base class for all bioarrow errors."""


class InvalidInputError(BioArrowError, ValueError):
    """Raised for malformed caller configuration (unknown attribute types, bad field filters, bad regions)."""


class TypeMismatchError(BioArrowError, TypeError):
    """Raised when an attribute value does not match the variant of the column it is appended to."""


class ParserError(BioArrowError, ValueError):
    """
    Raised when a reader rejects malformed bytes.

    Args:
        message: Description of the problem.
        line: 1-based line number of the offending input, if known.
    """
    def __init__(self, message: str, line: int = None):
        self.line = line
        super().__init__(f"{message} (line {line})" if line is not None else message)


class IndexLookupError(BioArrowError, LookupError):
    """Raised when a region cannot be resolved against an index (unknown contig or out-of-range coordinate)."""
