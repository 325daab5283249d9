#
#   libpolygcd : LIBrary for POLYnomial Greatest Common Divisors
#

import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())
