"""Folio static site generator.

Folio builds a site from marker files (``index.toml``), Jinja2 templates and
heading-structured markdown documents. Each markdown document compiles into a
tree of named sections that templates address by heading name, and every page
is rendered in two passes so stylesheet bundles can be linked by content hash.

The main entry point is the CLI module, which provides commands for building
sites and running the development server.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
