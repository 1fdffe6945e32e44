# This file is part of Userbook.
#
# Userbook is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Userbook is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with Userbook.  If not, see <https://www.gnu.org/licenses/>.
"""
vCard helpers built on vobject.

Cards are kept as vobject components everywhere in the package; these
functions hide the handful of vobject quirks the backend and the photo
loaders depend on.
"""

import base64
import binascii
from datetime import datetime, timezone

import vobject
from flask import current_app

from userbook.models import INDEX_VALUE_LENGTH

# Only these properties end up in the search index.
INDEX_PROPERTIES = (
    "BDAY",
    "UID",
    "N",
    "FN",
    "TITLE",
    "ROLE",
    "NOTE",
    "NICKNAME",
    "ORG",
    "CATEGORIES",
    "EMAIL",
    "TEL",
    "IMPP",
    "ADR",
    "URL",
    "GEO",
)


class CardParseError(ValueError):
    """Raised when a card body cannot be read as a vCard."""


def product_id():
    """The PRODID stamped on cards created by this application."""
    title = current_app.config.get("APP_TITLE", "Userbook")
    version = current_app.config.get("APP_VERSION", "")
    return f"-//{title}//NONSGML {title} {version}//EN"


def revision_stamp(now=None):
    """A W3C formatted timestamp for the REV property."""
    now = now or datetime.now(timezone.utc)
    return now.isoformat(timespec="seconds")


def parse_card(data):
    """Parses raw vCard text (or bytes) into a vobject component."""
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CardParseError(f"Card is not valid UTF-8: {e}") from e

    try:
        card = vobject.readOne(data)
    except (vobject.base.ParseError, StopIteration, ValueError) as e:
        raise CardParseError(f"Could not parse card: {e}") from e

    if card.name != "VCARD":
        raise CardParseError(f"Expected a VCARD, got a {card.name}")
    return card


def serialize_card(card):
    """Serializes a card without vobject's cardinality checks."""
    return card.serialize(validate=False)


def new_card(display_name):
    """Creates the minimal card mirroring a directory user."""
    card = vobject.vCard()
    card.add("fn").value = display_name
    card.add("n").value = vobject.vcard.Name(family=display_name)
    card.add("rev").value = revision_stamp()
    card.add("prodid").value = product_id()
    return card


def stamp_revision(card, force=True):
    """Sets REV to now. Without force, an existing REV is left alone."""
    if hasattr(card, "rev"):
        if force:
            card.rev.value = revision_stamp()
    else:
        card.add("rev").value = revision_stamp()
    return card


def card_display_name(card):
    if hasattr(card, "fn") and card.fn.value:
        return str(card.fn.value)
    return ""


def _is_preferred(line):
    types = []
    for value in line.params.get("TYPE", []):
        types.extend(part.strip().upper() for part in value.split(","))
    singletons = [value.upper() for value in getattr(line, "singletonparams", [])]
    return "PREF" in types or "PREF" in singletons


def indexed_properties(card):
    """
    Yields (name, value, preferred) for every index-worthy property of a card.
    Values are the raw, serialized property values cut to the index length.
    """
    # A non-transformed copy keeps structured values (N, ADR, ORG) as text.
    raw = vobject.readOne(serialize_card(card), transform=False)
    for line in raw.getChildren():
        name = line.name.upper()
        if name not in INDEX_PROPERTIES:
            continue
        value = line.value if isinstance(line.value, str) else str(line.value)
        yield name, value[:INDEX_VALUE_LENGTH], 1 if _is_preferred(line) else 0


def card_photo(card):
    """Returns the raw bytes of the card's PHOTO (or LOGO), or None."""
    for name in ("photo", "logo"):
        lines = card.contents.get(name)
        if not lines:
            continue
        value = lines[0].value
        if isinstance(value, bytes):
            return value
        if isinstance(value, str) and value.startswith("data:") and "," in value:
            try:
                return base64.b64decode(value.split(",", 1)[1])
            except (binascii.Error, ValueError):
                return None
    return None


def set_card_photo(card, data, image_type="JPEG"):
    """Replaces the card's PHOTO with the given image bytes."""
    card.contents.pop("photo", None)
    photo = card.add("photo")
    photo.encoding_param = "b"
    photo.type_param = image_type
    photo.value = data
    return card
