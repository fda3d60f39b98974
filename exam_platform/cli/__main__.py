import sys

from exam_platform.cli import main

sys.exit(main())
