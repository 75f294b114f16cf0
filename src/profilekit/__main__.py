"""Allow ``python -m profilekit``."""

import sys

from .cli import main

sys.exit(main())
