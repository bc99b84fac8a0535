"""Entry point for ``python -m orgview``."""

from orgview import cli


if __name__ == "__main__":
    cli.main()
