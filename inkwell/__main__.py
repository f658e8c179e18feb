"""Allow ``python -m inkwell``."""

import sys

from inkwell.main import main

sys.exit(main())
