"""Main entry point when executing wabridge as a package.

This allows running the package using python -m wabridge.
"""

from wabridge.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
