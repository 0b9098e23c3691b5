import sys

from orderedindex.main import main

sys.exit(main())
