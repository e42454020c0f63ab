"""EduLink relationship and workflow automation API."""

__version__ = "1.0.0"
