import sys

from apstab.cli import main

sys.exit(main())
