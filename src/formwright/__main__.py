"""Allow ``python -m formwright``."""

from formwright.cli import main

main()
