"""skillsync: one repository of agent skills, linked into every tool that reads them."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("skillsync")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
