"""Allow ``python -m csvcalc``."""

from csvcalc.cli import main

main()
