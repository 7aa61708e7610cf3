"""
Package entry point.

Allows running the application via:

    python -m coursedocs

This simply forwards execution to coursedocs.cli.main().
"""

from coursedocs.cli import main

if __name__ == "__main__":
    main()
