"""Allow ``python -m choreboard``."""

from choreboard.cli import main

main()
