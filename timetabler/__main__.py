"""
Entry point for running the scheduler as a module.

Usage:
    python -m timetabler solve input.json -o output.json
    python -m timetabler validate input.json
    python -m timetabler view output.json --faculty F001
    python -m timetabler generate problem.json --size small
"""

from timetabler.cli import main

if __name__ == "__main__":
    main()
