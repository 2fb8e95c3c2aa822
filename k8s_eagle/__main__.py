import sys

from k8s_eagle.main import main

sys.exit(main())
