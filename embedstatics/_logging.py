"""
Logging for embedstatics. Both the compiler and the runtime write to the
"embedstatics" logger, which by default prints to stderr.
"""

import sys
import time
import logging


class Formatter(logging.Formatter):
    """ Formatter that adds the level and a timestamp before the message.
    """

    def format(self, record):
        return "[{} {}] {}".format(
            record.levelname[0],
            time.strftime("%Y-%m-%d %H:%M:%S"),
            super().format(record),
        )


# Get our logger
logger = logging.getLogger("embedstatics")
logger.propagate = False
logger.setLevel(logging.INFO)

# Initialize the logger to write to stderr (but can be overriden)
_handler = logging.StreamHandler(sys.stderr)
_handler.setFormatter(Formatter())
logger.addHandler(_handler)
