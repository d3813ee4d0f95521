import sys

from codesync.cli import main

sys.exit(main())
