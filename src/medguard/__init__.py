"""MedGuard package metadata."""
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("medguard-phi-scan")
except PackageNotFoundError:
    __version__ = "0.1.0"
