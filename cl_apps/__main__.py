import sys

from cl_apps.cli import main

sys.exit(main())
