"""
Top-level module, including resource and optional dependency management.
"""
from functools import cached_property
from importlib import import_module
from importlib.metadata import metadata as load_metadata, PackageNotFoundError
from pathlib import Path


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class BioArrowWarning(Warning): pass
class ParserWarning(BioArrowWarning): pass


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """
    Lazily resolved package metadata and optional module availability.

    Examples:
        >>> if RESOURCES.has_module('zstandard'):
        ...     print("reading .zst inputs is supported")
    """
    def __init__(self, *optional_packages: str):
        self.package = Path(__file__).parent.name
        self.optional_packages = set(filter(self._check_module, optional_packages))

    @cached_property
    def metadata(self):
        try: return load_metadata(self.package)
        except PackageNotFoundError: return None

    @cached_property
    def version(self) -> str:
        return self.metadata['Version'] if self.metadata is not None else '0.0.0'

    def has_module(self, module_name: str) -> bool: return module_name in self.optional_packages

    @staticmethod
    def _check_module(module_name: str) -> bool:
        try:
            import_module(module_name)
            return True
        except ImportError: return False


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources('zstandard', 'pysam')
__version__ = RESOURCES.version
