import sys

from cardrender.cli import main

sys.exit(main())
