"""EduAccess - content access resolution for the educational marketplace."""

__version__ = "0.1.0"
