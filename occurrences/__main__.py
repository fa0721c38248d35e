"""Allow running the CLI as ``python -m occurrences``"""

from .cli import main

if __name__ == "__main__":
    main()
