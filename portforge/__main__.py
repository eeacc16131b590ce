import sys

from portforge.cli import main

sys.exit(main())
