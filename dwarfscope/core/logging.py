#    logging.py
#        Some global definition for logging
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = [
    'DUMPDATA_LOGLEVEL'
]

import logging

# Used to trace every decoded entry. Extremely verbose.
DUMPDATA_LOGLEVEL = logging.DEBUG - 1
logging.addLevelName(DUMPDATA_LOGLEVEL, "DUMPDATA")
