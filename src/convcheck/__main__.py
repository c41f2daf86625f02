"""Allow ``python -m convcheck``."""

from convcheck.cli import main

main()
