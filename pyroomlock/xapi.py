"""Thin xAPI client for Cisco video endpoints.

Commands are sent as XML documents to the device's /putxml endpoint over
HTTP, see the "API Reference Guide" of the device for the command tree.
"""
import logging
from typing import Any, Dict, List, Optional
import xml.etree.ElementTree as ET

import requests

from .common import XapiError

# Timeout for requests calls in seconds
TIMEOUT = 10

# Display duration meaning "stay open until answered"
DURATION_FOREVER = 0

INPUT_TYPE_PIN = "PIN"
KEYBOARD_CLOSED = "Closed"

# Reasons the device gives when a macro does not exist
MISSING_MACRO_REASONS = ("not found", "no such", "does not exist")

LOG = logging.getLogger(__name__)


def build_command(path: str, params: Optional[Dict[str, Any]] = None,
                  body: Optional[str] = None) -> bytes:
    """Build the XML document for an xAPI command.

    path is the space separated command, eg "Standby Halfwake".
    List values in params are sent as repeated, numbered elements.
    """
    root = ET.Element("Command")
    node = root
    for part in path.split():
        node = ET.SubElement(node, part)

    for name, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            for index, item in enumerate(value, start=1):
                element = ET.SubElement(node, name, item=str(index))
                element.text = str(item)
        else:
            element = ET.SubElement(node, name)
            element.text = str(value)

    if body is not None:
        ET.SubElement(node, "body").text = body

    return ET.tostring(root, encoding="utf-8")


def parse_result(text: str) -> ET.Element:
    """Parse a /putxml response and raise XapiError if the device refused it."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as ex:
        raise XapiError("Unexpected/garbled response from device: " + str(ex))

    for element in root.iter():
        if element.get("status") == "Error":
            reason = element.findtext(".//Reason") or element.findtext(".//Description")
            raise XapiError(reason or "Unknown error")

    return root


class XapiController:
    """Class to send commands to a video endpoint."""

    def __init__(
        self,
        base_url: str,
        username: str = "admin",
        password: str = "",
        verify: bool = True,
        timeout: int = TIMEOUT,
    ):
        """Init the client for the device at the given URL.

        base_url: device URL, eg https://10.0.0.20.
        """
        self.base_url = base_url.rstrip("/")
        self.auth = (username, password)
        self.verify = verify
        self.timeout = timeout

    def __repr__(self) -> str:
        """Get a string representation."""
        return f"{self.__class__.__name__} (url={self.base_url})"

    def putxml(self, payload: bytes) -> ET.Element:
        """Post an XML document and return the parsed result."""
        response = requests.post(
            self.base_url + "/putxml",
            data=payload,
            auth=self.auth,
            headers={"Content-Type": "text/xml"},
            verify=self.verify,
            timeout=self.timeout,
        )
        response.raise_for_status()
        response.encoding = response.encoding if response.encoding else "utf-8"
        return parse_result(response.text)

    def command(self, path: str, params: Optional[Dict[str, Any]] = None,
                body: Optional[str] = None) -> ET.Element:
        """Run an xAPI command."""
        LOG.debug("command: %s %s", path, list((params or {}).keys()))
        return self.putxml(build_command(path, params, body))

    def display_text_input(
        self,
        feedback_id: str,
        text: str,
        input_type: str = INPUT_TYPE_PIN,
        placeholder: str = " ",
        duration: int = DURATION_FOREVER,
        keyboard_state: Optional[str] = None,
    ) -> None:
        """Show a text input modal on the touch panel."""
        self.command(
            "UserInterface Message TextInput Display",
            {
                "FeedbackId": feedback_id,
                "Text": text,
                "InputType": input_type,
                "KeyboardState": keyboard_state,
                "Placeholder": placeholder,
                "Duration": duration,
            },
        )

    def clear_text_input(self, feedback_id: str) -> None:
        """Remove a text input modal shown with the same feedback id."""
        self.command("UserInterface Message TextInput Clear", {"FeedbackId": feedback_id})

    def standby_halfwake(self) -> None:
        """Put the device in half-wake mode."""
        self.command("Standby Halfwake")

    def save_macro(self, name: str, body: str, overwrite: bool = True) -> None:
        """Store a macro on the device."""
        self.command(
            "Macros Macro Save",
            {"Name": name, "Overwrite": overwrite, "Transpile": False},
            body=body,
        )

    def get_macro(self, name: str) -> Optional[str]:
        """Get the body of a stored macro.

        Returns None if the device has no macro with that name.
        """
        try:
            result = self.command("Macros Macro Get", {"Name": name, "Content": True})
        except XapiError as ex:
            if any(text in ex.reason.lower() for text in MISSING_MACRO_REASONS):
                return None
            raise
        for macro in result.iter("Macro"):
            if macro.findtext("Name") == name:
                return macro.findtext("Content") or ""
        return None

    def register_feedback(self, slot: int, server_url: str,
                          expressions: List[str]) -> None:
        """Ask the device to post JSON feedback for expressions to server_url."""
        self.command(
            "HttpFeedback Register",
            {
                "FeedbackSlot": slot,
                "ServerUrl": server_url,
                "Format": "JSON",
                "Expression": expressions,
            },
        )
