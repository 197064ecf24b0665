[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "smbkit"
version = "0.1.0"
description = "SMB2/SMB3 wire structures and NTLMv2 authentication primitives"
requires-python = ">=3.10"
dependencies = [
    "pycryptodome",
]
keywords = ["smb", "smb2", "smb3", "ntlm", "ntlmv2", "cifs", "protocol"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Security",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["smbkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
