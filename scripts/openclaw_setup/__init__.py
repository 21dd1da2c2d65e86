"""OpenClaw Docker Setup: local or VPS installer for the OpenClaw gateway."""

__version__ = '0.1.0'
