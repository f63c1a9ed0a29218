import sys

from regscript.cli import main

sys.exit(main())
