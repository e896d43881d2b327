"""asmmap - Namespace to assembly ownership index for Unity projects."""

__version__ = "0.1.0"
