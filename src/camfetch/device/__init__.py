"""
Device API adapters.

Adapters are configured by import path, e.g.
``CAMFETCH_DEVICE_API=my_vendor.bindings:create_api``. The target is either a
DeviceAPI instance or a zero-argument callable returning one.
"""

from __future__ import annotations

import importlib

from camfetch.device.base import DeviceAPI, DeviceHandle, RootSession, TransferHandle
from camfetch.exceptions import AdapterLoadError


def load_device_api(path: str) -> DeviceAPI:
    """Resolve "package.module:attr" into a DeviceAPI."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise AdapterLoadError(path, ValueError("expected 'package.module:attr'"))

    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise AdapterLoadError(path, e) from e

    # Classes structurally match the protocol too, so instantiate them
    if isinstance(target, type) or (callable(target) and not isinstance(target, DeviceAPI)):
        api = target()
    else:
        api = target
    if not isinstance(api, DeviceAPI):
        raise AdapterLoadError(path, TypeError(f"{type(api).__name__} is not a DeviceAPI"))
    return api


__all__ = [
    "DeviceAPI",
    "DeviceHandle",
    "RootSession",
    "TransferHandle",
    "load_device_api",
]
