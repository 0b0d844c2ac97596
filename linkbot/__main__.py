import sys

from linkbot.main import main

sys.exit(main())
