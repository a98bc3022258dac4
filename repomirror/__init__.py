"""Shallow git mirrors of remote repositories for package builds."""

__version__ = "0.3.0"
