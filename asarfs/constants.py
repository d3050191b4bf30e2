# Format limits
UINT32_MAX = 2 ** 32 - 1  # declared sizes must fit a 32-bit field

# Integrity digests
INTEGRITY_ALGORITHM = "SHA256"
INTEGRITY_BLOCK_SIZE = 4 * 1024 * 1024  # 4 MiB

# Streaming
READ_CHUNK_SIZE = 64 * 1024
TMP_PREFIX = "asar-"

# Listing labels (padded to the same width)
PACK_STATE = "pack  "
UNPACK_STATE = "unpack"

# Symlink resolution
MAX_LINK_DEPTH = 40
