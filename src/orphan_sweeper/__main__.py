"""Allow ``python -m orphan_sweeper``."""

from orphan_sweeper.cli import main_entry

if __name__ == "__main__":
    main_entry()
