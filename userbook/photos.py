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
Temporary contact photos for the cropping workflow.

A photo is loaded from one of the sources in PhotoSource, normalized
(upright, at most PHOTO_MAX_SIZE pixels on its longer side) and parked in the
cache under a random key until the user has picked a crop.
"""

import enum
import uuid

from flask import current_app

from userbook import cache
from userbook.cards import CardParseError, card_photo, parse_card
from userbook.image import PhotoImage

MAX_SIZE = 400
CACHE_TIMEOUT = 600
KEY_PREFIX = "photo-"


class PhotoSource(enum.IntEnum):
    STORED_CONTACT = 0
    FILESYSTEM = 1
    UPLOADED = 2


class PhotoState(enum.Enum):
    UNFETCHED = "unfetched"
    FETCHED = "fetched"
    NORMALIZED = "normalized"
    CACHED = "cached"


class UnknownPhotoSource(ValueError):
    """Raised for a source tag that doesn't name a PhotoSource."""


class InvalidPhotoError(ValueError):
    """Raised when an undecodable photo is normalized or cached."""


class TemporaryPhoto:
    """
    Base class for the photo loaders. Subclasses implement load_image().

    Not safe to share between concurrent callers.
    """

    source = None

    def __init__(self, cache_backend=None):
        self.cache = cache_backend if cache_backend is not None else cache
        self.image = None
        self.key = None
        self.state = PhotoState.UNFETCHED

    def load_image(self):
        """Returns a PhotoImage read from this loader's source."""
        raise NotImplementedError

    def fetch(self):
        if self.state is PhotoState.UNFETCHED:
            self.image = self.load_image()
            self.state = PhotoState.FETCHED
        return self.image

    def is_valid(self):
        self.fetch()
        return self.image is not None and self.image.valid()

    def normalize(self):
        """Rotates and scales the photo. Runs once per loader."""
        self.fetch()
        if self.state is not PhotoState.FETCHED:
            return
        if not self.image.valid():
            raise InvalidPhotoError(f"Could not decode the {self.source.name.lower()} photo")

        max_size = current_app.config.get("PHOTO_MAX_SIZE", MAX_SIZE)
        self.image.fix_orientation()
        if self.image.height > max_size or self.image.width > max_size:
            self.image.resize(max_size)
        self.state = PhotoState.NORMALIZED

    def get_photo(self):
        self.normalize()
        return self.image

    def cache_photo(self):
        """Stores the normalized photo in the cache. Runs once per loader."""
        self.normalize()
        if self.state is not PhotoState.NORMALIZED:
            return
        timeout = current_app.config.get("PHOTO_CACHE_TIMEOUT", CACHE_TIMEOUT)
        self.key = f"{KEY_PREFIX}{uuid.uuid4().hex}"
        self.cache.set(self.key, self.image.data(), timeout=timeout)
        self.state = PhotoState.CACHED

    def get_key(self):
        self.cache_photo()
        return self.key


class ContactPhoto(TemporaryPhoto):
    """The photo currently stored on a contact card."""

    source = PhotoSource.STORED_CONTACT

    def __init__(self, backend, addressbook_id, contact_id, cache_backend=None):
        super().__init__(cache_backend)
        self.backend = backend
        self.addressbook_id = addressbook_id
        self.contact_id = contact_id

    def load_image(self):
        contact = self.backend.get_contact(self.addressbook_id, self.contact_id)
        if not contact or not contact.get("carddata"):
            current_app.logger.warning("ContactPhoto: no contact %s in %s", self.contact_id, self.addressbook_id)
            return PhotoImage()
        try:
            vcard = parse_card(contact["carddata"])
        except CardParseError as e:
            current_app.logger.error("ContactPhoto: %s", e)
            return PhotoImage()
        return PhotoImage.from_bytes(card_photo(vcard))


class FilesystemPhoto(TemporaryPhoto):
    """A photo read from a file on disk."""

    source = PhotoSource.FILESYSTEM

    def __init__(self, path, cache_backend=None):
        super().__init__(cache_backend)
        self.path = path

    def load_image(self):
        return PhotoImage.from_path(self.path)


class UploadedPhoto(TemporaryPhoto):
    """A freshly uploaded photo, given as bytes or a readable file object."""

    source = PhotoSource.UPLOADED

    def __init__(self, upload, cache_backend=None):
        super().__init__(cache_backend)
        self.upload = upload

    def load_image(self):
        data = self.upload if isinstance(self.upload, bytes) else self.upload.read()
        return PhotoImage.from_bytes(data)


def get_temporary_photo(source, data, cache_backend=None):
    """
    Returns the loader for a source tag. `data` is what that loader needs:
    (backend, addressbook_id, contact_id) for a stored contact photo, a path
    for a file, bytes or a file object for an upload.
    """
    try:
        source = PhotoSource(source)
    except ValueError as e:
        raise UnknownPhotoSource(f"Unknown photo source: {source!r}") from e

    if source is PhotoSource.STORED_CONTACT:
        backend, addressbook_id, contact_id = data
        return ContactPhoto(backend, addressbook_id, contact_id, cache_backend=cache_backend)
    if source is PhotoSource.FILESYSTEM:
        return FilesystemPhoto(data, cache_backend=cache_backend)
    return UploadedPhoto(data, cache_backend=cache_backend)
