import sys

from content_lifecycle.app_shell.cli import main

sys.exit(main())
