"""MobileDevice.framework backend (macOS only).

Binds the private framework that Xcode itself uses to talk to connected
devices. Declarations follow the framework's C signatures; every status is
returned untouched so the caller can translate it.
"""

from __future__ import annotations

import ctypes
import logging
import os
import sys

from ..errors import ConfigError
from . import DeviceService, NativeResult
from .codes import NOT_FOUND

logger = logging.getLogger(__name__)


FRAMEWORK_DIRS = (
    "/Library/Apple/System/Library/PrivateFrameworks/MobileDevice.framework",
    "/System/Library/PrivateFrameworks/MobileDevice.framework",
)
COREFOUNDATION = "/System/Library/Frameworks/CoreFoundation.framework/CoreFoundation"

kCFStringEncodingUTF8 = 0x08000100
kCFURLPOSIXPathStyle = 0


def find_framework() -> str | None:
    """Return the MobileDevice.framework directory, if this host has one."""
    if sys.platform != "darwin":
        return None
    for path in FRAMEWORK_DIRS:
        if os.path.isdir(path):
            return path
    return None


class CFDictionaryKeyCallBacks(ctypes.Structure):
    _fields_ = [
        ("version", ctypes.c_long),
        ("retain", ctypes.c_void_p),
        ("release", ctypes.c_void_p),
        ("copyDescription", ctypes.c_void_p),
        ("equal", ctypes.c_void_p),
        ("hash", ctypes.c_void_p),
    ]


class CFDictionaryValueCallBacks(ctypes.Structure):
    _fields_ = [
        ("version", ctypes.c_long),
        ("retain", ctypes.c_void_p),
        ("release", ctypes.c_void_p),
        ("copyDescription", ctypes.c_void_p),
        ("equal", ctypes.c_void_p),
    ]


def _declare(func, argtypes, restype):
    func.argtypes = argtypes
    func.restype = restype
    return func


class MobileDeviceFramework(DeviceService):
    """DeviceService backed by MobileDevice.framework via ctypes."""

    name = "framework"

    def __init__(self, framework_dir: str | None = None):
        framework_dir = framework_dir or find_framework()
        if not framework_dir:
            raise ConfigError(
                "Can't find MobileDevice.framework:\n" + "\n".join(FRAMEWORK_DIRS)
            )
        self.cf = ctypes.CDLL(COREFOUNDATION)
        self.md = ctypes.CDLL(os.path.join(framework_dir, "MobileDevice"))
        self._bind()
        self._device_list = None

    def _bind(self):
        cf, md = self.cf, self.md
        vp, i32 = ctypes.c_void_p, ctypes.c_int

        _declare(cf.CFRelease, [vp], None)
        _declare(cf.CFGetTypeID, [vp], ctypes.c_ulong)
        _declare(cf.CFStringGetTypeID, [], ctypes.c_ulong)
        _declare(cf.CFCopyDescription, [vp], vp)
        _declare(cf.CFStringGetLength, [vp], ctypes.c_long)
        _declare(cf.CFStringCreateWithCString, [vp, ctypes.c_char_p, ctypes.c_uint32], vp)
        _declare(cf.CFStringGetCString, [vp, ctypes.c_char_p, ctypes.c_long, ctypes.c_uint32], ctypes.c_bool)
        _declare(cf.CFArrayGetCount, [vp], ctypes.c_long)
        _declare(cf.CFArrayGetValueAtIndex, [vp, ctypes.c_long], vp)
        _declare(cf.CFURLCreateWithFileSystemPath, [vp, vp, ctypes.c_long, ctypes.c_bool], vp)
        _declare(cf.CFDictionaryCreate, [
            vp, ctypes.POINTER(vp), ctypes.POINTER(vp), ctypes.c_long,
            ctypes.POINTER(CFDictionaryKeyCallBacks),
            ctypes.POINTER(CFDictionaryValueCallBacks),
        ], vp)
        self.key_callbacks = CFDictionaryKeyCallBacks.in_dll(cf, "kCFTypeDictionaryKeyCallBacks")
        self.value_callbacks = CFDictionaryValueCallBacks.in_dll(cf, "kCFTypeDictionaryValueCallBacks")

        _declare(md.AMDCreateDeviceList, [], vp)
        _declare(md.AMDeviceCopyDeviceIdentifier, [vp], vp)
        _declare(md.AMDeviceCopyValue, [vp, vp, vp], vp)
        _declare(md.AMDeviceGetInterfaceType, [vp], i32)
        for name in (
            "AMDeviceConnect", "AMDeviceDisconnect", "AMDeviceIsPaired",
            "AMDevicePair", "AMDeviceValidatePairing",
            "AMDeviceStartSession", "AMDeviceStopSession",
        ):
            _declare(getattr(md, name), [vp], i32)
        for name in ("AMDeviceSecureTransferPath", "AMDeviceSecureInstallApplication"):
            _declare(getattr(md, name), [i32, vp, vp, vp, vp, vp], i32)

    # ------------------------------------------------------------------
    # CoreFoundation helpers
    # ------------------------------------------------------------------

    def _cfstr(self, value: str):
        return self.cf.CFStringCreateWithCString(
            None, value.encode("utf-8"), kCFStringEncodingUTF8
        )

    def _to_str(self, ref) -> str | None:
        """Convert a CF object to text and release it (Copy rule)."""
        if not ref:
            return None
        try:
            if self.cf.CFGetTypeID(ref) == self.cf.CFStringGetTypeID():
                return self._string_value(ref)
            description = self.cf.CFCopyDescription(ref)
            try:
                return self._string_value(description)
            finally:
                self.cf.CFRelease(description)
        finally:
            self.cf.CFRelease(ref)

    def _string_value(self, ref) -> str:
        size = self.cf.CFStringGetLength(ref) * 4 + 1
        buffer = ctypes.create_string_buffer(size)
        if not self.cf.CFStringGetCString(ref, buffer, size, kCFStringEncodingUTF8):
            raise RuntimeError("Failed to convert CFString")
        return buffer.value.decode("utf-8")

    def _cfdict(self, options: dict):
        keys = [self._cfstr(str(k)) for k in options]
        values = [self._cfstr(str(v)) for v in options.values()]
        count = len(keys)
        key_array = (ctypes.c_void_p * count)(*keys)
        value_array = (ctypes.c_void_p * count)(*values)
        ref = self.cf.CFDictionaryCreate(
            None, key_array, value_array, count,
            ctypes.byref(self.key_callbacks), ctypes.byref(self.value_callbacks),
        )
        # the dictionary retains its own references
        for item in keys + values:
            self.cf.CFRelease(item)
        return ref

    def _file_url(self, path: str):
        cfpath = self._cfstr(path)
        try:
            return self.cf.CFURLCreateWithFileSystemPath(
                None, cfpath, kCFURLPOSIXPathStyle, True
            )
        finally:
            self.cf.CFRelease(cfpath)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def enumerate_handles(self) -> NativeResult:
        if self._device_list:
            self.cf.CFRelease(self._device_list)
        # keep the array alive: the handles it holds are borrowed from it
        self._device_list = self.md.AMDCreateDeviceList()
        if not self._device_list:
            return NativeResult(value=[])
        count = self.cf.CFArrayGetCount(self._device_list)
        return NativeResult(value=[
            self.cf.CFArrayGetValueAtIndex(self._device_list, i) for i in range(count)
        ])

    def connect(self, handle) -> NativeResult:
        return NativeResult(self.md.AMDeviceConnect(handle))

    def disconnect(self, handle) -> NativeResult:
        return NativeResult(self.md.AMDeviceDisconnect(handle))

    def copy_identifier(self, handle) -> NativeResult:
        value = self._to_str(self.md.AMDeviceCopyDeviceIdentifier(handle))
        return NativeResult(0 if value else NOT_FOUND, value)

    def copy_value(self, handle, key: str, domain: str | None = None) -> NativeResult:
        cfkey = self._cfstr(key)
        cfdomain = self._cfstr(domain) if domain else None
        try:
            value = self._to_str(self.md.AMDeviceCopyValue(handle, cfdomain, cfkey))
        finally:
            self.cf.CFRelease(cfkey)
            if cfdomain:
                self.cf.CFRelease(cfdomain)
        if value is None:
            logger.error("Value from property `%s` is null", key)
            return NativeResult(NOT_FOUND)
        return NativeResult(value=value)

    def get_interface_type(self, handle) -> NativeResult:
        return NativeResult(value=self.md.AMDeviceGetInterfaceType(handle))

    def is_paired(self, handle) -> NativeResult:
        return NativeResult(value=bool(self.md.AMDeviceIsPaired(handle)))

    def pair(self, handle) -> NativeResult:
        return NativeResult(self.md.AMDevicePair(handle))

    def validate_pairing(self, handle) -> NativeResult:
        return NativeResult(self.md.AMDeviceValidatePairing(handle))

    def start_session(self, handle) -> NativeResult:
        return NativeResult(self.md.AMDeviceStartSession(handle))

    def stop_session(self, handle) -> NativeResult:
        return NativeResult(self.md.AMDeviceStopSession(handle))

    def secure_transfer_path(self, handle, path: str, options: dict) -> NativeResult:
        return self._secure_call(self.md.AMDeviceSecureTransferPath, handle, path, options)

    def secure_install_application(self, handle, path: str, options: dict) -> NativeResult:
        return self._secure_call(self.md.AMDeviceSecureInstallApplication, handle, path, options)

    def _secure_call(self, func, handle, path: str, options: dict) -> NativeResult:
        url = self._file_url(path)
        cfoptions = self._cfdict(options)
        try:
            return NativeResult(func(0, handle, url, cfoptions, None, None))
        finally:
            self.cf.CFRelease(cfoptions)
            self.cf.CFRelease(url)
