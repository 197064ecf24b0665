"""NTLMv2 client, server, challenge parsing, session and cryptographic primitives."""