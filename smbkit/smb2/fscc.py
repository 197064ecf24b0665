"""File system control structures: reparse data, copychunk and file information classes."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import IntEnum

from .dtyp import Filetime, Sid
from .util import Encoder, decode_utf16le, encode_utf16le, encoded_len

__all__ = [
    "FileInformationClass",
    "FsInformationClass",
    "SymbolicLinkReparseDataBuffer",
    "SrvRequestResumeKeyResponse",
    "SrvCopychunk",
    "SrvCopychunkCopy",
    "SrvCopychunkResponse",
    "FileDirectoryInformation",
    "iter_directory_information",
    "FileRenameInformation",
    "FileLinkInformation",
    "FileDispositionInformation",
    "FilePositionInformation",
    "FileEndOfFileInformation",
    "FileFsFullSizeInformation",
    "FileQuotaInformation",
    "FileBasicInformation",
    "FileStandardInformation",
    "FileNameInformation",
    "FileAllInformation",
]

# Reparse tags
IO_REPARSE_TAG_RESERVED_ZERO = 0x00000000
IO_REPARSE_TAG_RESERVED_ONE = 0x00000001
IO_REPARSE_TAG_MOUNT_POINT = 0xA0000003
IO_REPARSE_TAG_HSM = 0xC0000004
IO_REPARSE_TAG_HSM2 = 0x80000006
IO_REPARSE_TAG_DRIVER_EXTENDER = 0x80000005
IO_REPARSE_TAG_SIS = 0x80000007
IO_REPARSE_TAG_DFS = 0x8000000A
IO_REPARSE_TAG_DFSR = 0x80000012
IO_REPARSE_TAG_FILTER_MANAGER = 0x8000000B
IO_REPARSE_TAG_SYMLINK = 0xA000000C

# FSCTL codes
FSCTL_DFS_GET_REFERRALS = 0x00060194
FSCTL_PIPE_PEEK = 0x0011400C
FSCTL_PIPE_WAIT = 0x00110018
FSCTL_PIPE_TRANSCEIVE = 0x0011C017
FSCTL_SRV_COPYCHUNK = 0x001440F2
FSCTL_SRV_ENUMERATE_SNAPSHOTS = 0x00144064
FSCTL_SRV_REQUEST_RESUME_KEY = 0x00140078
FSCTL_SRV_READ_HASH = 0x001441BB
FSCTL_SRV_COPYCHUNK_WRITE = 0x001480F2
FSCTL_LMR_REQUEST_RESILIENCY = 0x001401D4
FSCTL_QUERY_NETWORK_INTERFACE_INFO = 0x001401FC
FSCTL_GET_REPARSE_POINT = 0x000900A8
FSCTL_SET_REPARSE_POINT = 0x000900A4
FSCTL_DFS_GET_REFERRALS_EX = 0x000601B0
FSCTL_FILE_LEVEL_TRIM = 0x00098208
FSCTL_VALIDATE_NEGOTIATE_INFO = 0x00140204

# File attributes
FILE_ATTRIBUTE_ARCHIVE = 0x20
FILE_ATTRIBUTE_COMPRESSED = 0x800
FILE_ATTRIBUTE_DIRECTORY = 0x10
FILE_ATTRIBUTE_ENCRYPTED = 0x4000
FILE_ATTRIBUTE_HIDDEN = 0x2
FILE_ATTRIBUTE_NORMAL = 0x80
FILE_ATTRIBUTE_NOT_CONTENT_INDEXED = 0x2000
FILE_ATTRIBUTE_OFFLINE = 0x1000
FILE_ATTRIBUTE_READONLY = 0x1
FILE_ATTRIBUTE_REPARSE_POINT = 0x400
FILE_ATTRIBUTE_SPARSE_FILE = 0x200
FILE_ATTRIBUTE_SYSTEM = 0x4
FILE_ATTRIBUTE_TEMPORARY = 0x100
FILE_ATTRIBUTE_INTEGRITY_STREAM = 0x8000
FILE_ATTRIBUTE_NO_SCRUB_DATA = 0x20000


class FileInformationClass(IntEnum):
    """File information classes used by QUERY_DIRECTORY, QUERY_INFO and SET_INFO."""

    FILE_DIRECTORY_INFORMATION = 1
    FILE_FULL_DIRECTORY_INFORMATION = 2
    FILE_BOTH_DIRECTORY_INFORMATION = 3
    FILE_BASIC_INFORMATION = 4
    FILE_STANDARD_INFORMATION = 5
    FILE_INTERNAL_INFORMATION = 6
    FILE_EA_INFORMATION = 7
    FILE_ACCESS_INFORMATION = 8
    FILE_NAME_INFORMATION = 9
    FILE_RENAME_INFORMATION = 10
    FILE_LINK_INFORMATION = 11
    FILE_NAMES_INFORMATION = 12
    FILE_DISPOSITION_INFORMATION = 13
    FILE_POSITION_INFORMATION = 14
    FILE_FULL_EA_INFORMATION = 15
    FILE_MODE_INFORMATION = 16
    FILE_ALIGNMENT_INFORMATION = 17
    FILE_ALL_INFORMATION = 18
    FILE_ALLOCATION_INFORMATION = 19
    FILE_END_OF_FILE_INFORMATION = 20
    FILE_ALTERNATE_NAME_INFORMATION = 21
    FILE_STREAM_INFORMATION = 22
    FILE_PIPE_INFORMATION = 23
    FILE_PIPE_LOCAL_INFORMATION = 24
    FILE_PIPE_REMOTE_INFORMATION = 25
    FILE_MAILSLOT_QUERY_INFORMATION = 26
    FILE_MAILSLOT_SET_INFORMATION = 27
    FILE_COMPRESSION_INFORMATION = 28
    FILE_OBJECT_ID_INFORMATION = 29
    FILE_MOVE_CLUSTER_INFORMATION = 31
    FILE_QUOTA_INFORMATION = 32
    FILE_REPARSE_POINT_INFORMATION = 33
    FILE_NETWORK_OPEN_INFORMATION = 34
    FILE_ATTRIBUTE_TAG_INFORMATION = 35
    FILE_TRACKING_INFORMATION = 36
    FILE_ID_BOTH_DIRECTORY_INFORMATION = 37
    FILE_ID_FULL_DIRECTORY_INFORMATION = 38
    FILE_VALID_DATA_LENGTH_INFORMATION = 39
    FILE_SHORT_NAME_INFORMATION = 40
    FILE_SFIO_RESERVE_INFORMATION = 44
    FILE_SFIO_VOLUME_INFORMATION = 45
    FILE_HARD_LINK_INFORMATION = 46
    FILE_NORMALIZED_NAME_INFORMATION = 48
    FILE_ID_GLOBAL_TX_DIRECTORY_INFORMATION = 50
    FILE_STANDARD_LINK_INFORMATION = 54


class FsInformationClass(IntEnum):
    """File system information classes."""

    FILE_FS_VOLUME_INFORMATION = 1
    FILE_FS_LABEL_INFORMATION = 2
    FILE_FS_SIZE_INFORMATION = 3
    FILE_FS_DEVICE_INFORMATION = 4
    FILE_FS_ATTRIBUTE_INFORMATION = 5
    FILE_FS_CONTROL_INFORMATION = 6
    FILE_FS_FULL_SIZE_INFORMATION = 7
    FILE_FS_OBJECT_ID_INFORMATION = 8
    FILE_FS_DRIVER_PATH_INFORMATION = 9
    FILE_FS_VOLUME_FLAGS_INFORMATION = 10
    FILE_FS_SECTOR_SIZE_INFORMATION = 11


def _require(data: bytes, length: int, what: str) -> None:
    if len(data) < length:
        raise ValueError(f"{what} is truncated")


def _filetimes(data: bytes, offset: int, count: int) -> list[Filetime]:
    return [Filetime.from_bytes(data[offset + 8 * i:offset + 8 * i + 8]) for i in range(count)]


# ---------------------------------------------------------------------------
# Reparse data
# ---------------------------------------------------------------------------


@dataclass
class SymbolicLinkReparseDataBuffer(Encoder):
    """REPARSE_DATA_BUFFER for a symbolic link."""

    flags: int = 0
    substitute_name: str = ""
    print_name: str = ""

    def size(self) -> int:
        return 20 + encoded_len(self.substitute_name) + encoded_len(self.print_name)

    def encode(self) -> bytes:
        subst = encode_utf16le(self.substitute_name)
        printed = encode_utf16le(self.print_name)
        total = 20 + len(subst) + len(printed)
        head = struct.pack(
            "<IHHHHHHI",
            IO_REPARSE_TAG_SYMLINK,
            total - 8,  # ReparseDataLength
            0,
            0,  # SubstituteNameOffset
            len(subst),
            len(subst),  # PrintNameOffset
            len(printed),
            self.flags,
        )
        return head + subst + printed

    @classmethod
    def from_bytes(cls, data: bytes) -> SymbolicLinkReparseDataBuffer:
        data = bytes(data)
        _require(data, 20, "symbolic link reparse buffer")
        tag, rlen = struct.unpack_from("<IH", data, 0)
        if tag != IO_REPARSE_TAG_SYMLINK:
            raise ValueError("not a symbolic link reparse buffer")
        soff, slen, poff, plen, flags = struct.unpack_from("<HHHHI", data, 8)
        if (soff | poff) & 1:
            raise ValueError("misaligned name offset")
        if len(data) < 8 + rlen:
            raise ValueError("symbolic link reparse buffer is truncated")
        if rlen < 12 + soff + slen or rlen < 12 + poff + plen:
            raise ValueError("name lies outside the reparse data")
        path = data[20:]
        return cls(
            flags=flags,
            substitute_name=decode_utf16le(path[soff:soff + slen]),
            print_name=decode_utf16le(path[poff:poff + plen]),
        )


# ---------------------------------------------------------------------------
# Server-side copy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SrvRequestResumeKeyResponse:
    """Output of FSCTL_SRV_REQUEST_RESUME_KEY."""

    resume_key: bytes
    context: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> SrvRequestResumeKeyResponse:
        data = bytes(data)
        _require(data, 28, "resume key response")
        (context_length,) = struct.unpack_from("<I", data, 24)
        _require(data, 28 + context_length, "resume key context")
        return cls(data[:24], data[28:28 + context_length])


@dataclass
class SrvCopychunk(Encoder):
    """One chunk of a server-side copy."""

    source_offset: int = 0
    target_offset: int = 0
    length: int = 0

    def size(self) -> int:
        return 24

    def encode(self) -> bytes:
        return struct.pack("<qqI4x", self.source_offset, self.target_offset, self.length)


@dataclass
class SrvCopychunkCopy(Encoder):
    """Input of FSCTL_SRV_COPYCHUNK: a resume key and the chunks to copy."""

    source_key: bytes = bytes(24)
    chunks: list[SrvCopychunk] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.source_key = bytes(self.source_key)
        if len(self.source_key) != 24:
            raise ValueError("source key must be 24 bytes")

    def size(self) -> int:
        return 32 + 24 * len(self.chunks)

    def encode(self) -> bytes:
        head = self.source_key + struct.pack("<I4x", len(self.chunks))
        return head + b"".join(chunk.encode() for chunk in self.chunks)


@dataclass(frozen=True)
class SrvCopychunkResponse:
    """Output of FSCTL_SRV_COPYCHUNK."""

    chunks_written: int
    chunk_bytes_written: int
    total_bytes_written: int

    @classmethod
    def from_bytes(cls, data: bytes) -> SrvCopychunkResponse:
        _require(data, 12, "copychunk response")
        return cls(*struct.unpack_from("<III", data, 0))


# ---------------------------------------------------------------------------
# Directory listing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileDirectoryInformation:
    """One entry of a FileDirectoryInformation listing."""

    next_entry_offset: int
    file_index: int
    creation_time: Filetime
    last_access_time: Filetime
    last_write_time: Filetime
    change_time: Filetime
    end_of_file: int
    allocation_size: int
    file_attributes: int
    file_name: str

    @classmethod
    def from_bytes(cls, data: bytes) -> FileDirectoryInformation:
        data = bytes(data)
        _require(data, 64, "directory entry")
        next_offset, index = struct.unpack_from("<II", data, 0)
        end_of_file, allocation, attributes, name_len = struct.unpack_from("<qqII", data, 40)
        _require(data, 64 + name_len, "directory entry name")
        created, accessed, written, changed = _filetimes(data, 8, 4)
        return cls(
            next_entry_offset=next_offset,
            file_index=index,
            creation_time=created,
            last_access_time=accessed,
            last_write_time=written,
            change_time=changed,
            end_of_file=end_of_file,
            allocation_size=allocation,
            file_attributes=attributes,
            file_name=decode_utf16le(data[64:64 + name_len]),
        )


def iter_directory_information(data: bytes) -> Iterator[FileDirectoryInformation]:
    """Yield every entry of a chained FileDirectoryInformation buffer."""
    data = bytes(data)
    offset = 0
    while True:
        entry = FileDirectoryInformation.from_bytes(data[offset:])
        yield entry
        if entry.next_entry_offset == 0:
            return
        offset += entry.next_entry_offset


# ---------------------------------------------------------------------------
# SET_INFO inputs
# ---------------------------------------------------------------------------


def _encode_type2(replace_if_exists: bool, root_directory: int, file_name: str) -> bytes:
    name = encode_utf16le(file_name)
    head = struct.pack("<B7xQI", 1 if replace_if_exists else 0, root_directory, len(name))
    return head + name


@dataclass
class FileRenameInformation(Encoder):
    """FILE_RENAME_INFORMATION_TYPE_2 input for SET_INFO."""

    replace_if_exists: bool = False
    root_directory: int = 0
    file_name: str = ""

    def size(self) -> int:
        return 20 + encoded_len(self.file_name)

    def encode(self) -> bytes:
        return _encode_type2(self.replace_if_exists, self.root_directory, self.file_name)


@dataclass
class FileLinkInformation(Encoder):
    """FILE_LINK_INFORMATION_TYPE_2 input for SET_INFO."""

    replace_if_exists: bool = False
    root_directory: int = 0
    file_name: str = ""

    def size(self) -> int:
        return 20 + encoded_len(self.file_name)

    def encode(self) -> bytes:
        return _encode_type2(self.replace_if_exists, self.root_directory, self.file_name)


@dataclass
class FileDispositionInformation(Encoder):
    """Marks a file for deletion on close."""

    delete_pending: bool = False

    def size(self) -> int:
        return 1

    def encode(self) -> bytes:
        return bytes([1 if self.delete_pending else 0])


@dataclass
class FilePositionInformation(Encoder):
    """The current byte offset of a file handle."""

    current_byte_offset: int = 0

    def size(self) -> int:
        return 8

    def encode(self) -> bytes:
        return struct.pack("<q", self.current_byte_offset)

    @classmethod
    def from_bytes(cls, data: bytes) -> FilePositionInformation:
        _require(data, 8, "position information")
        return cls(struct.unpack_from("<q", data, 0)[0])


@dataclass
class FileEndOfFileInformation(Encoder):
    """The end-of-file position of a file."""

    end_of_file: int = 0

    def size(self) -> int:
        return 8

    def encode(self) -> bytes:
        return struct.pack("<q", self.end_of_file)

    @classmethod
    def from_bytes(cls, data: bytes) -> FileEndOfFileInformation:
        _require(data, 8, "end-of-file information")
        return cls(struct.unpack_from("<q", data, 0)[0])


# ---------------------------------------------------------------------------
# QUERY_INFO outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileFsFullSizeInformation:
    """Volume size information."""

    total_allocation_units: int
    caller_available_allocation_units: int
    actual_available_allocation_units: int
    sectors_per_allocation_unit: int
    bytes_per_sector: int

    @classmethod
    def from_bytes(cls, data: bytes) -> FileFsFullSizeInformation:
        _require(data, 32, "full size information")
        return cls(*struct.unpack_from("<qqqII", data, 0))


@dataclass(frozen=True)
class FileQuotaInformation:
    """One entry of a quota listing."""

    next_entry_offset: int
    change_time: Filetime
    quota_used: int
    quota_threshold: int
    quota_limit: int
    sid: Sid

    @classmethod
    def from_bytes(cls, data: bytes) -> FileQuotaInformation:
        data = bytes(data)
        _require(data, 40, "quota information")
        next_offset, sid_length = struct.unpack_from("<II", data, 0)
        _require(data, 40 + sid_length, "quota information SID")
        used, threshold, limit = struct.unpack_from("<qqq", data, 16)
        return cls(
            next_entry_offset=next_offset,
            change_time=Filetime.from_bytes(data[8:16]),
            quota_used=used,
            quota_threshold=threshold,
            quota_limit=limit,
            sid=Sid.from_bytes(data[40:40 + sid_length]),
        )


@dataclass
class FileBasicInformation(Encoder):
    """Timestamps and attributes of a file; a missing timestamp is left unchanged."""

    creation_time: Filetime | None = None
    last_access_time: Filetime | None = None
    last_write_time: Filetime | None = None
    change_time: Filetime | None = None
    file_attributes: int = 0

    def size(self) -> int:
        return 40

    def encode(self) -> bytes:
        times = (self.creation_time, self.last_access_time, self.last_write_time, self.change_time)
        encoded = b"".join(t.encode() if t is not None else bytes(8) for t in times)
        return encoded + struct.pack("<I4x", self.file_attributes)

    @classmethod
    def from_bytes(cls, data: bytes) -> FileBasicInformation:
        data = bytes(data)
        _require(data, 40, "basic information")
        created, accessed, written, changed = _filetimes(data, 0, 4)
        (attributes,) = struct.unpack_from("<I", data, 32)
        return cls(created, accessed, written, changed, attributes)


@dataclass(frozen=True)
class FileStandardInformation:
    """Size, link count and kind of a file."""

    allocation_size: int
    end_of_file: int
    number_of_links: int
    delete_pending: bool
    directory: bool

    @classmethod
    def from_bytes(cls, data: bytes) -> FileStandardInformation:
        _require(data, 24, "standard information")
        allocation, end_of_file, links, pending, directory = struct.unpack_from("<qqIBB", data, 0)
        return cls(allocation, end_of_file, links, bool(pending), bool(directory))


@dataclass(frozen=True)
class FileNameInformation:
    """The name of a file."""

    file_name: str

    @classmethod
    def from_bytes(cls, data: bytes) -> FileNameInformation:
        data = bytes(data)
        _require(data, 4, "name information")
        (length,) = struct.unpack_from("<I", data, 0)
        _require(data, 4 + length, "name information")
        return cls(decode_utf16le(data[4:4 + length]))


@dataclass(frozen=True)
class FileAllInformation:
    """The combined FileAllInformation query result."""

    basic: FileBasicInformation
    standard: FileStandardInformation
    index_number: int
    ea_size: int
    access_flags: int
    current_byte_offset: int
    mode: int
    alignment_requirement: int
    name: str

    @classmethod
    def from_bytes(cls, data: bytes) -> FileAllInformation:
        data = bytes(data)
        _require(data, 96, "all information")
        (index_number,) = struct.unpack_from("<q", data, 64)
        ea_size, access_flags = struct.unpack_from("<II", data, 72)
        (position,) = struct.unpack_from("<q", data, 80)
        mode, alignment = struct.unpack_from("<II", data, 88)
        return cls(
            basic=FileBasicInformation.from_bytes(data[:40]),
            standard=FileStandardInformation.from_bytes(data[40:64]),
            index_number=index_number,
            ea_size=ea_size,
            access_flags=access_flags,
            current_byte_offset=position,
            mode=mode,
            alignment_requirement=alignment,
            name=FileNameInformation.from_bytes(data[96:]).file_name,
        )