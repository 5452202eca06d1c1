import sys

from hookdeploy.cli import main

sys.exit(main())
