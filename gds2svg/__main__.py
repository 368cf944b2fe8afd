import sys

from gds2svg.cli import main

sys.exit(main())
