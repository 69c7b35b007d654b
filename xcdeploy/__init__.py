"""xcdeploy: install built iOS apps onto connected devices and simulators."""

from .sdk import Deployer

__version__ = "0.1.0"

__all__ = ["Deployer"]
