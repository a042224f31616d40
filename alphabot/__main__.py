import sys

from alphabot.cli import main

sys.exit(main())
