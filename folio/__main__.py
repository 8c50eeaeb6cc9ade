"""Entry point for the Folio CLI when run as ``python -m folio``."""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
