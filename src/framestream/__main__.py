"""Entry point for ``python -m framestream``."""

from .cli import main

if __name__ == "__main__":
    main()
