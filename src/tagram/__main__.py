import sys

from tagram.cli import main

sys.exit(main())
