"""Allow ``python -m pdsmigrate``."""

from pdsmigrate.cli import main

if __name__ == "__main__":
    main()
