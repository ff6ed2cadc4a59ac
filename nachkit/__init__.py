"""MIPS COFF/NOFF tools, a disassembler and interpreter, and a simulated-disk file system."""

__version__ = "0.1.0"