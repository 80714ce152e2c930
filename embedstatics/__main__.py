import sys

from ._compiler import main


if __name__ == "__main__":
    sys.exit(main())
