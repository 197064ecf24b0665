"""SMB2 protocol constants."""

from __future__ import annotations

from enum import IntEnum, IntFlag

MAGIC = b"\xfeSMB"
MAGIC2 = b"\xfdSMB"


class Command(IntEnum):
    """SMB2 packet header command codes."""

    NEGOTIATE = 0
    SESSION_SETUP = 1
    LOGOFF = 2
    TREE_CONNECT = 3
    TREE_DISCONNECT = 4
    CREATE = 5
    CLOSE = 6
    FLUSH = 7
    READ = 8
    WRITE = 9
    LOCK = 10
    IOCTL = 11
    CANCEL = 12
    ECHO = 13
    QUERY_DIRECTORY = 14
    CHANGE_NOTIFY = 15
    QUERY_INFO = 16
    SET_INFO = 17
    OPLOCK_BREAK = 18


class HeaderFlags(IntFlag):
    """SMB2 packet header flags."""

    SERVER_TO_REDIR = 0x1
    ASYNC_COMMAND = 0x2
    RELATED_OPERATIONS = 0x4
    SIGNED = 0x8
    PRIORITY_MASK = 0x70
    DFS_OPERATIONS = 0x10000000
    REPLAY_OPERATIONS = 0x20000000


class Dialect(IntEnum):
    """SMB2 dialect revisions."""

    UNKNOWN = 0x0
    SMB2 = 0x2FF
    SMB202 = 0x202
    SMB210 = 0x210
    SMB300 = 0x300
    SMB302 = 0x302
    SMB311 = 0x311


class CreateDisposition(IntEnum):
    """CREATE request dispositions (also used as create actions)."""

    FILE_SUPERSEDE = 0
    FILE_OPEN = 1
    FILE_CREATE = 2
    FILE_OPEN_IF = 3
    FILE_OVERWRITE = 4
    FILE_OVERWRITE_IF = 5


# Transform header
SMB2_ENCRYPTION_AES128_CCM = 0x1
ENCRYPTED = 0x1

# Error response
SMB2_ERROR_ID_DEFAULT = 0x0
SYMLINK_FLAG_RELATIVE = 0x1

# Negotiate security mode
SMB2_NEGOTIATE_SIGNING_ENABLED = 0x1
SMB2_NEGOTIATE_SIGNING_REQUIRED = 0x2

# Global capabilities
SMB2_GLOBAL_CAP_DFS = 0x1
SMB2_GLOBAL_CAP_LEASING = 0x2
SMB2_GLOBAL_CAP_LARGE_MTU = 0x4
SMB2_GLOBAL_CAP_MULTI_CHANNEL = 0x8
SMB2_GLOBAL_CAP_PERSISTENT_HANDLES = 0x10
SMB2_GLOBAL_CAP_DIRECTORY_LEASING = 0x20
SMB2_GLOBAL_CAP_ENCRYPTION = 0x40

# Negotiate context types
SMB2_PREAUTH_INTEGRITY_CAPABILITIES = 0x1
SMB2_ENCRYPTION_CAPABILITIES = 0x2

# Hash algorithms
SHA512 = 0x1

# Ciphers
AES128CCM = 0x1
AES128GCM = 0x2

# Session setup
SMB2_SESSION_FLAG_BINDING = 0x1
SMB2_SESSION_FLAG_IS_GUEST = 0x1
SMB2_SESSION_FLAG_IS_NULL = 0x2
SMB2_SESSION_FLAG_ENCRYPT_DATA = 0x4

# Tree connect
SMB2_TREE_CONNECT_FLAG_CLUSTER_RECONNECT = 0x1

SMB2_SHARE_TYPE_DISK = 1
SMB2_SHARE_TYPE_PIPE = 2
SMB2_SHARE_TYPE_PRINT = 3

SMB2_SHAREFLAG_MANUAL_CACHING = 0x0
SMB2_SHAREFLAG_AUTO_CACHING = 0x10
SMB2_SHAREFLAG_VDO_CACHING = 0x20
SMB2_SHAREFLAG_NO_CACHING = 0x30
SMB2_SHAREFLAG_DFS = 0x1
SMB2_SHAREFLAG_DFS_ROOT = 0x2
SMB2_SHAREFLAG_RESTRICT_EXCLUSIVE_OPENS = 0x100
SMB2_SHAREFLAG_FORCE_SHARED_DELETE = 0x200
SMB2_SHAREFLAG_ALLOW_NAMESPACE_CACHING = 0x400
SMB2_SHAREFLAG_ACCESS_BASED_DIRECTORY_ENUM = 0x800
SMB2_SHAREFLAG_FORCE_LEVELII_OPLOCK = 0x1000
SMB2_SHAREFLAG_ENABLE_HASH_V1 = 0x2000
SMB2_SHAREFLAG_ENABLE_HASH_V2 = 0x4000
SMB2_SHAREFLAG_ENCRYPT_DATA = 0x8000

SMB2_SHARE_CAP_DFS = 0x8
SMB2_SHARE_CAP_CONTINUOUS_AVAILABILITY = 0x10
SMB2_SHARE_CAP_SCALEOUT = 0x20
SMB2_SHARE_CAP_CLUSTER = 0x40
SMB2_SHARE_CAP_ASYMMETRIC = 0x80

# Oplock levels
SMB2_OPLOCK_LEVEL_NONE = 0x0
SMB2_OPLOCK_LEVEL_II = 0x1
SMB2_OPLOCK_LEVEL_EXCLUSIVE = 0x8
SMB2_OPLOCK_LEVEL_BATCH = 0x9
SMB2_OPLOCK_LEVEL_LEASE = 0xFF

# Impersonation levels
ANONYMOUS = 0
IDENTIFICATION = 1
IMPERSONATION = 2
DELEGATE = 3

# Desired access: files, pipes, printers
FILE_READ_DATA = 0x1
FILE_WRITE_DATA = 0x2
FILE_APPEND_DATA = 0x4
FILE_READ_EA = 0x8
FILE_WRITE_EA = 0x10
FILE_EXECUTE = 0x20
FILE_DELETE_CHILD = 0x40
FILE_READ_ATTRIBUTES = 0x80
FILE_WRITE_ATTRIBUTES = 0x100

# Desired access: directories
FILE_LIST_DIRECTORY = 0x200
FILE_ADD_FILE = 0x400
FILE_ADD_SUBDIRECTORY = 0x800
FILE_TRAVERSE = 0x4000

# Desired access: common
DELETE = 0x10000
READ_CONTROL = 0x20000
WRITE_DAC = 0x40000
WRITE_OWNER = 0x80000
SYNCHRONIZE = 0x100000
ACCESS_SYSTEM_SECURITY = 0x1000000
MAXIMUM_ALLOWED = 0x2000000
GENERIC_ALL = 0x10000000
GENERIC_EXECUTE = 0x20000000
GENERIC_WRITE = 0x40000000
GENERIC_READ = 0x80000000

# Share access
FILE_SHARE_READ = 0x1
FILE_SHARE_WRITE = 0x2
FILE_SHARE_DELETE = 0x4

# Create options
FILE_DIRECTORY_FILE = 1 << 0
FILE_WRITE_THROUGH = 1 << 1
FILE_SEQUENTIAL_ONLY = 1 << 2
FILE_NO_INTERMEDIATE_BUFFERING = 1 << 3
FILE_SYNCHRONOUS_IO_ALERT = 1 << 4
FILE_SYNCHRONOUS_IO_NONALERT = 1 << 5
FILE_NON_DIRECTORY_FILE = 1 << 6
FILE_COMPLETE_IF_OPLOCKED = 1 << 8
FILE_NO_EA_KNOWLEDGE = 1 << 9
FILE_OPEN_REMOTE_INSTANCE = 1 << 10
FILE_RANDOM_ACCESS = 1 << 11
FILE_DELETE_ON_CLOSE = 1 << 12
FILE_OPEN_BY_FILE_ID = 1 << 13
FILE_OPEN_FOR_BACKUP_INTENT = 1 << 14
FILE_NO_COMPRESSION = 1 << 15
FILE_OPEN_REQUIRING_OPLOCK = 1 << 16
FILE_DISALLOW_EXCLUSIVE = 1 << 17
FILE_RESERVE_OPFILTER = 1 << 20
FILE_OPEN_REPARSE_POINT = 1 << 21
FILE_OPEN_NO_RECALL = 1 << 22
FILE_OPEN_FOR_FREE_SPACE_QUERY = 1 << 23

# Create response flags
SMB2_CREATE_FLAG_REPARSEPOINT = 0x1

# Close
SMB2_CLOSE_FLAG_POSTQUERY_ATTRIB = 0x1

# Read
SMB2_READFLAG_READ_UNBUFFERED = 0x1
SMB2_CHANNEL_NONE = 0
SMB2_CHANNEL_RDMA_V1 = 1
SMB2_CHANNEL_RDMA_V1_INVALIDATE = 2

# Write
SMB2_WRITEFLAG_WRITE_THROUGH = 0x1
SMB2_WRITEFLAG_WRITE_UNBUFFERED = 0x2

# Ioctl
SMB2_0_IOCTL_IS_FSCTL = 0x1

# Query directory flags
RESTART_SCANS = 0x1
RETURN_SINGLE_ENTRY = 0x2
INDEX_SPECIFIED = 0x4
REOPEN = 0x10

# Query info types
INFO_FILE = 1
INFO_FILESYSTEM = 2
INFO_SECURITY = 3
INFO_QUOTA = 4

# Additional security information
OWNER_SECURITY_INFORMATION = 0x1
GROUP_SECURITY_INFORMATION = 0x2
DACL_SECURITY_INFORMATION = 0x4
SACL_SECURITY_INFORMATION = 0x8
LABEL_SECURITY_INFORMATION = 0x10
ATTRIBUTE_SECURITY_INFORMATION = 0x20
SCOPE_SECURITY_INFORMATION = 0x40
BACKUP_SECURITY_INFORMATION = 0x10000

# Query info flags
SL_RESTART_SCAN = 0x1
SL_RETURN_SINGLE_ENTRY = 0x2
SL_INDEX_SPECIFIED = 0x4

# Set info types
SMB2_0_INFO_FILE = 1
SMB2_0_INFO_FILESYSTEM = 2
SMB2_0_INFO_SECURITY = 3
SMB2_0_INFO_QUOTA = 4