import sys

from update_notice.cli import main

if __name__ == "__main__":
    sys.exit(main())
