[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nachkit"
version = "0.1.0"
description = "MIPS COFF/NOFF converters, a MIPS disassembler and interpreter, and a flat file system on a simulated disk"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "mips",
    "coff",
    "noff",
    "disassembler",
    "interpreter",
    "emulator",
    "file system",
    "operating systems",
    "teaching",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Software Development :: Disassemblers",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
nachkit-disasm = "nachkit.disasm:main"
nachkit-coff2noff = "nachkit.coff2noff:main"
nachkit-coff2flat = "nachkit.coff2flat:main"
nachkit-run = "nachkit.interp:main"

[tool.hatch.build.targets.wheel]
packages = ["nachkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
check_untyped_defs = true
