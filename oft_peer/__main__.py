import sys

from oft_peer.cli import main

sys.exit(main())
