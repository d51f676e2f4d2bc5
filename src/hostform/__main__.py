"""Entry point for running hostform as a module.

This allows running the CLI with:
    python -m hostform
"""

from hostform.cli.main import cli

if __name__ == "__main__":
    cli()
