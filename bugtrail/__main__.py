"""Entry point for running bugtrail as a module.

This allows running the application with:
    python -m bugtrail [COMMAND] [OPTIONS]
"""

from bugtrail.cli import app

if __name__ == "__main__":
    app()
