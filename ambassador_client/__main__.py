# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

import sys

from ambassador_client.cli import main

if __name__ == "__main__":
    sys.exit(main())
