"""Mirror a documentation site and bind it into a single PDF."""

__version__ = "0.1.0"
