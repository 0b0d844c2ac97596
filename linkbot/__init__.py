"""Link dependency-update merge requests to tracking issues."""

__version__ = "0.1.0"
