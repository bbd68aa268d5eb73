DEFAULT_PORT = 11211

# How many consecutive failed connection attempts are tolerated
# before giving up, and how long to wait between them.
DEFAULT_RETRIES = 3
DEFAULT_RETRY_DELAY_S = 3.0
DEFAULT_CONNECTION_TIMEOUT_S = 3.0
# Idle socket timeout, None disables it
DEFAULT_IDLE_TIMEOUT_S = None

# Older servers only store 16 bits of client flags
DEFAULT_LEGACY_FLAGS = True
MAX_LEGACY_FLAG = 0xFFFF
MAX_FLAG = 0xFFFFFF

MAX_KEY_SIZE = 250

# Expiration times up to 30 days are relative seconds, anything
# bigger is an absolute unix timestamp.
MAX_RELATIVE_EXPIRATION = 60 * 60 * 24 * 30

# incr / decr operate on 64 bit unsigned integers
MAX_DELTA = 2**64 - 1
