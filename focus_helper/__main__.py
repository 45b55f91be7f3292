"""Entry point for focusctl when run as a module."""

from .cli import main

if __name__ == "__main__":
    main()
