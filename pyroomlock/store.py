"""Persistence of the configured PIN."""
from abc import ABC, abstractmethod
import errno
import json
import logging
import os
from typing import NamedTuple, Optional

import requests

from .common import PyroomlockError, XapiError
from .xapi import XapiController

DEFAULT_PIN = "1234"

# Name of the macro used to keep the record on the device
STORE_MACRO_NAME = "PinLock_Memory_Storage"

# Literal text in front of the JSON record. It keeps the macro a valid (inert)
# script when it is stored next to the other macros on the device.
RECORD_PREFIX = "const memory = "

# Error reasons meaning the device has no room for the record
STORAGE_LIMIT_REASONS = ("limit", "no space", "full", "quota")

LOG = logging.getLogger(__name__)


class PinRecord(NamedTuple):
    """The persisted PIN configuration."""

    pin_is_configured: bool = False
    pin_code: str = DEFAULT_PIN


class PinStoreError(PyroomlockError):
    """Base class for persistence problems."""


class StoreUnreadable(PinStoreError):
    """The stored record could not be fetched."""


class StoreCorrupted(PinStoreError):
    """The stored record does not parse."""


class SerializationFailure(PinStoreError):
    """The record could not be encoded."""


class StorageLimitExceeded(PinStoreError):
    """There is no room left to store the record."""


class WriteFailure(PinStoreError):
    """The record could not be written."""


def encode_record(record: PinRecord) -> str:
    """Encode a record as prefix + JSON."""
    try:
        return RECORD_PREFIX + json.dumps(record._asdict())
    except (TypeError, ValueError) as ex:
        raise SerializationFailure(str(ex))


def decode_record(body: str) -> PinRecord:
    """Decode a stored body, raising StoreCorrupted on any deviation."""
    if not body.startswith(RECORD_PREFIX):
        raise StoreCorrupted("Record prefix is missing")

    try:
        data = json.loads(body[len(RECORD_PREFIX):])
    except ValueError as ex:
        raise StoreCorrupted("JSON decode error: " + str(ex))

    if not isinstance(data, dict):
        raise StoreCorrupted("Record is not a map: %r" % (data,))

    configured = data.get("pin_is_configured")
    pin_code = data.get("pin_code")
    if not isinstance(configured, bool) or not isinstance(pin_code, str):
        raise StoreCorrupted("Unexpected record fields: %r" % (data,))

    return PinRecord(pin_is_configured=configured, pin_code=pin_code)


class AbstractPinStore(ABC):
    """Key-value persistence for the PIN record."""

    @abstractmethod
    def read(self) -> Optional[PinRecord]:
        """Return the stored record, or None if nothing was stored yet."""
        raise NotImplementedError("read method is not implemented.")

    @abstractmethod
    def write(self, record: PinRecord) -> None:
        """Store the record, replacing any previous one."""
        raise NotImplementedError("write method is not implemented.")


class MemoryPinStore(AbstractPinStore):
    """Volatile store, lost on process restart."""

    def __init__(self, record: Optional[PinRecord] = None) -> None:
        """Init store, optionally holding a record."""
        self._record = record

    def read(self) -> Optional[PinRecord]:
        return self._record

    def write(self, record: PinRecord) -> None:
        self._record = record


class FilePinStore(AbstractPinStore):
    """Store the record in a local file."""

    def __init__(self, path: str) -> None:
        """Init store at path."""
        self.path = path

    def read(self) -> Optional[PinRecord]:
        try:
            with open(self.path, encoding="utf-8") as store_file:
                body = store_file.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as ex:
            raise StoreUnreadable(str(ex))
        return decode_record(body)

    def write(self, record: PinRecord) -> None:
        body = encode_record(record)
        tmp_path = self.path + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as store_file:
                store_file.write(body)
            os.replace(tmp_path, self.path)
        except OSError as ex:
            try:
                os.remove(tmp_path)
            except OSError:
                LOG.debug("No temporary file to remove at %s", tmp_path)
            if ex.errno in (errno.ENOSPC, errno.EDQUOT):
                raise StorageLimitExceeded(str(ex))
            raise WriteFailure(str(ex))


class MacroPinStore(AbstractPinStore):
    """Store the record as the body of a macro on the device itself."""

    def __init__(self, xapi: XapiController, name: str = STORE_MACRO_NAME) -> None:
        """Init store using the given device."""
        self.xapi = xapi
        self.name = name

    def read(self) -> Optional[PinRecord]:
        try:
            body = self.xapi.get_macro(self.name)
        except (XapiError, requests.RequestException) as ex:
            raise StoreUnreadable(str(ex))
        if body is None:
            return None
        return decode_record(body)

    def write(self, record: PinRecord) -> None:
        body = encode_record(record)
        try:
            self.xapi.save_macro(self.name, body, overwrite=True)
        except XapiError as ex:
            if any(text in ex.reason.lower() for text in STORAGE_LIMIT_REASONS):
                raise StorageLimitExceeded(ex.reason)
            raise WriteFailure(ex.reason)
        except requests.RequestException as ex:
            raise WriteFailure(str(ex))
        LOG.debug("Stored PIN record in macro %s", self.name)
