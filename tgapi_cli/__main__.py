import sys

from tgapi_cli.main import main

sys.exit(main())
