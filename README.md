# smbkit

Building blocks for SMB2/SMB3 clients and servers, written in pure Python.

- **`smbkit.smb2`**: the SMB2 packet header and the SMB3 transform header,
  file ids, negotiate contexts, quota queries, FILETIME and SID values, and
  the MS-FSCC structures used by QUERY_INFO, SET_INFO, QUERY_DIRECTORY and
  IOCTL, together with the protocol constants.
- **`smbkit.ntlm`**: an NTLMv2 client and server that run the
  negotiate / challenge / authenticate exchange, and the session that signs
  and seals messages afterwards.

## Installation

```
pip install smbkit
```

The only runtime dependency is `pycryptodome`, which supplies MD4 and RC4.

## NTLM authentication

```python
from smbkit.ntlm.client import Client
from smbkit.ntlm.server import Server

password = "password"

client = Client(user="user", password=password, domain="WORKGROUP")
server = Server("server")
server.add_account("user", password)

nmsg = client.negotiate()           # NEGOTIATE_MESSAGE
cmsg = server.challenge(nmsg)       # CHALLENGE_MESSAGE
amsg = client.authenticate(cmsg)    # AUTHENTICATE_MESSAGE
server.authenticate(amsg)           # raises ValueError on a failed login

session = client.session
signature, next_seq = session.sum(b"payload", 0)
```

`Client` also accepts `nt_hash` (an NT password hash used instead of the
password), `workstation` and `target_spn`. Leaving user and password empty
and `nt_hash` unset gives an anonymous login. When no domain is given, the
target name from the server's challenge is used.

Once the exchange is done, `client.session` and `server.session` hold a
`smbkit.ntlm.session.Session`:

- `sum(plaintext, seq_num)` and `check_sum(signature, plaintext, seq_num)`
  sign and verify a message, returning the next sequence number;
- `seal(plaintext, seq_num)` and `unseal(ciphertext, seq_num)` put a 16-byte
  signature in front of the message (encrypting it when sealing was
  negotiated); `unseal` raises `ValueError` on a signature mismatch;
- `info_map()` returns the NetBIOS and DNS names the server announced;
- `session_key` is the exported session key.

`smbkit.ntlm.challenge.ChallengeMessage.parse` parses a CHALLENGE_MESSAGE on
its own. The low-level primitives (`ntowfv2`, `ntowfv2_hash`,
`ntlmv2_response`, `sign_key`, `seal_key`, `mac`, `parse_av_pairs`,
`TargetInfoEncoder`, and the `NegotiateFlags` and `AvId` enums) are in
`smbkit.ntlm.crypto`.

## SMB2 structures

Structures that go out on the wire expose `size()` and `encode()`, which
returns `bytes`. Structures read from the wire are built with
`from_bytes(...)`, which raises `ValueError` when the buffer is malformed.

```python
from smbkit.smb2.dtyp import Filetime, nsec_to_filetime
from smbkit.smb2.util import roundup

ft = nsec_to_filetime(0)
assert Filetime.from_bytes(ft.encode()).nanoseconds() == 0
assert roundup(13, 8) == 16
```

The modules are:

- `smbkit.smb2.util`: the `Encoder` base class, `roundup` and UTF-16 helpers;
- `smbkit.smb2.const`: `Command`, `Dialect`, `HeaderFlags`,
  `CreateDisposition` and the other protocol constants;
- `smbkit.smb2.dtyp`: `Filetime`, `nsec_to_filetime` and `Sid`;
- `smbkit.smb2.packet`: `PacketHeader` (builds a 64-byte header),
  `PacketCodec` and `TransformCodec` (read and write header fields in a
  buffer, and check it with `is_invalid()`);
- `smbkit.smb2.structs`: `FileId`, `HashContext`, `CipherContext`,
  `NegotiateContext`, `HashContextData`, `CipherContextData` and
  `QueryQuotaInfo`;
- `smbkit.smb2.fscc`: symbolic-link reparse data, server-side copy
  (`SrvCopychunkCopy` and its responses), directory entries with
  `iter_directory_information`, and the file, rename, link, disposition,
  position, end-of-file, basic, standard, name, all, quota and volume
  full-size information classes.

## What this package does not do

It has no network code: it opens no connections, runs no SMB server and
offers no file-share client. Beyond the packet and transform headers it has
no encoders or decoders for the bodies of the individual SMB2 commands
(NEGOTIATE, SESSION_SETUP, CREATE, READ, WRITE and so on), and it does not
perform SMB3 encryption or packet signing. It provides the pieces such
programs are built from.

## Running the tests

```
pip install -e ".[test]"
pytest
```