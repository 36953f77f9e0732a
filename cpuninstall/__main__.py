"""Allow ``python -m cpuninstall``."""

from cpuninstall.cli.main import main

if __name__ == "__main__":
    main()
