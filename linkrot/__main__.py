import sys

from linkrot.cli import main

sys.exit(main())
