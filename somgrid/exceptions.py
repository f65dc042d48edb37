"""
Exception hierarchy for SOM grids and training
"""


class SOMError(Exception):
    """Base class for all errors raised by somgrid"""


class UninitializedStateError(SOMError, RuntimeError):
    """A node or grid vector was read before it was set"""


class ConfigurationError(SOMError, ValueError):
    """Malformed construction or training parameters"""


class IndexOutOfRangeError(SOMError, IndexError):
    """Multi-index addressing outside the grid's topology"""
