import sys

from kanakey.cli import main

sys.exit(main())
