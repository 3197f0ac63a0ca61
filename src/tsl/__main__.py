"""Run the TSL command line tool.

Usage:
    python -m tsl parse "name = 'joe' OR name = 'jane'"
    python -m tsl filter "pages BETWEEN 100 AND 200" --input books.yaml
"""

from tsl.cli.main import cli


if __name__ == "__main__":
    cli()
