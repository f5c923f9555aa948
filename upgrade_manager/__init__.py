"""Multisig-governed, timelocked program upgrades with an HTTP management backend."""

__version__ = "0.1.0"