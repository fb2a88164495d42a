import sys

from surveydef.cli import main

sys.exit(main())
