import sys

from truesight.cli import main


sys.exit(main())
