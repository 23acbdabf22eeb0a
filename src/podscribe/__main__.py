import sys

from podscribe.app import main

if __name__ == "__main__":
    sys.exit(main())
