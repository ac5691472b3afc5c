"""Settings shared by the binfields modules."""

import os

DEBUG = os.environ.get('BINFIELDS_DEBUG', '') not in ('', '0')

LOG_FORMAT = '[%(name)s] %(levelname)s %(message)s'

# how many bytes of a buffer to show in error messages
PFORMAT_BYTESLEN = 40
