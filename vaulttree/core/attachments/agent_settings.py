"""
SSH Agent Settings Attachment
=============================

Codec for the ``KeeAgent.settings`` attachment that tells SSH-agent aware
clients how to load the private key stored next to it.

Document:

    <?xml version="1.0" encoding="UTF-16"?>
    <EntrySettings xmlns:xsd="..." xmlns:xsi="...">
      <AllowUseOfSshKey>true</AllowUseOfSshKey>
      <AddAtDatabaseOpen>true</AddAtDatabaseOpen>
      <RemoveAtDatabaseClose>true</RemoveAtDatabaseClose>
      <UseConfirmConstraintWhenAdding>false</UseConfirmConstraintWhenAdding>
      <UseLifetimeConstraintWhenAdding>false</UseLifetimeConstraintWhenAdding>
      <LifetimeConstraintDuration>1800</LifetimeConstraintDuration>
      <Location>
        <SelectedType>attachment</SelectedType>
        <AttachmentName>id_rsa</AttachmentName>
        <SaveAttachmentToTempFile>false</SaveAttachmentToTempFile>
        <FileName />
      </Location>
    </EntrySettings>

Stored as UTF-16-LE with a byte order mark. The declaration keeps saying
UTF-16 after the text has been decoded, so it is rewritten to UTF-8 before
parsing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Optional
from xml.etree.ElementTree import Element, ParseError, SubElement, indent, tostring

from defusedxml import ElementTree as DefusedET

from vaulttree.core.errors import SettingsParseFailure

SETTINGS_ATTACHMENT_NAME: Final[str] = "KeeAgent.settings"
PRIVATE_KEY_ATTACHMENT_NAME: Final[str] = "id_rsa"

_ENCODING: Final[str] = "utf-16-le"
_BOM: Final[str] = "\ufeff"
_DECLARATION: Final[str] = '<?xml version="1.0" encoding="UTF-16"?>'
_DECLARED_TAG: Final[str] = 'encoding="UTF-16"'
_PARSER_TAG: Final[str] = 'encoding="UTF-8"'

# Missing or empty elements read as false or 0.
_TRUE_TEXT: Final[frozenset[str]] = frozenset({"1", "t", "T", "true", "True", "TRUE"})
_FALSE_TEXT: Final[frozenset[str]] = frozenset({"0", "f", "F", "false", "False", "FALSE"})

_XSD_NS: Final[str] = "http://www.w3.org/2001/XMLSchema"
_XSI_NS: Final[str] = "http://www.w3.org/2001/XMLSchema-instance"

_log = logging.getLogger("vaulttree.attachments")


@dataclass(frozen=True)
class AgentSettings:
    """How an SSH agent should handle the key attached to an entry."""

    private_key_attachment: str = PRIVATE_KEY_ATTACHMENT_NAME
    add_at_open: bool = False
    remove_at_close: bool = True
    confirm_constraint: bool = False
    lifetime_constraint: bool = False
    lifetime_seconds: int = 600


def _bool_text(value: bool) -> str:
    return "true" if value else "false"


def _text(parent: Element, tag: str, value: str) -> None:
    SubElement(parent, tag).text = value


def render(settings: AgentSettings) -> str:
    """Render the settings document as text, declaration included."""
    root = Element("EntrySettings", {"xmlns:xsd": _XSD_NS, "xmlns:xsi": _XSI_NS})
    _text(root, "AllowUseOfSshKey", "true")
    _text(root, "AddAtDatabaseOpen", _bool_text(settings.add_at_open))
    _text(root, "RemoveAtDatabaseClose", _bool_text(settings.remove_at_close))
    _text(root, "UseConfirmConstraintWhenAdding", _bool_text(settings.confirm_constraint))
    _text(root, "UseLifetimeConstraintWhenAdding", _bool_text(settings.lifetime_constraint))
    _text(root, "LifetimeConstraintDuration", str(int(settings.lifetime_seconds)))

    location = SubElement(root, "Location")
    _text(location, "SelectedType", "attachment")
    _text(location, "AttachmentName", settings.private_key_attachment)
    _text(location, "SaveAttachmentToTempFile", "false")
    SubElement(location, "FileName")

    indent(root, space="  ")
    body = tostring(root, encoding="unicode")
    return f"{_DECLARATION}\n{body}"


def encode(settings: AgentSettings) -> bytes:
    """Serialize settings to UTF-16-LE bytes with a leading BOM."""
    return (_BOM + render(settings)).encode(_ENCODING)


def _parse_bool(root: Element, tag: str) -> bool:
    text = (root.findtext(tag) or "").strip()
    if not text or text in _FALSE_TEXT:
        return False
    if text in _TRUE_TEXT:
        return True
    raise SettingsParseFailure(f"invalid boolean in {tag}", repr(text))


def _parse_int(root: Element, tag: str) -> int:
    text = (root.findtext(tag) or "").strip()
    if not text:
        return 0
    try:
        return int(text)
    except ValueError as e:
        raise SettingsParseFailure(f"invalid integer in {tag}", repr(text)) from e


def parse(data: bytes) -> AgentSettings:
    """
    Parse the settings attachment.

    Raises:
        SettingsParseFailure: If the content is not a settings document
    """
    try:
        text = data.decode(_ENCODING)
    except UnicodeDecodeError as e:
        raise SettingsParseFailure("settings are not UTF-16-LE", str(e)) from e

    text = text.lstrip(_BOM).replace(_DECLARED_TAG, _PARSER_TAG)

    try:
        root = DefusedET.fromstring(text.encode("utf-8"))
    except (ParseError, ValueError, LookupError) as e:
        raise SettingsParseFailure("settings are not well-formed XML", str(e)) from e

    if root.tag != "EntrySettings":
        raise SettingsParseFailure(f"unexpected root element {root.tag!r}")

    location = root.find("Location")
    attachment_name = ""
    if location is not None:
        attachment_name = (location.findtext("AttachmentName") or "").strip()

    return AgentSettings(
        private_key_attachment=attachment_name,
        add_at_open=_parse_bool(root, "AddAtDatabaseOpen"),
        remove_at_close=_parse_bool(root, "RemoveAtDatabaseClose"),
        confirm_constraint=_parse_bool(root, "UseConfirmConstraintWhenAdding"),
        lifetime_constraint=_parse_bool(root, "UseLifetimeConstraintWhenAdding"),
        lifetime_seconds=_parse_int(root, "LifetimeConstraintDuration"),
    )


def decode(data: bytes) -> Optional[AgentSettings]:
    """
    Decode the settings attachment, or return ``None``.

    Attachments written by other tools under the same name are tolerated:
    anything unparseable is reported as "no settings".
    """
    try:
        return parse(data)
    except SettingsParseFailure as e:
        _log.warning(f"Ignoring unparseable agent settings: {e.summary}")
        return None
