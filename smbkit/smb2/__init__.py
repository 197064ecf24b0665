"""SMB2 constants, headers, data types and MS-FSCC structures."""