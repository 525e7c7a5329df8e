import sys

from ancrecon._cli import main

sys.exit(main())
