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

from io import BytesIO

from flask import current_app
from PIL import Image, ImageOps, UnidentifiedImageError


class PhotoImage:
    """
    A decoded image. An image that could not be decoded is kept around as an
    invalid PhotoImage rather than raising, so callers can check valid().
    """

    def __init__(self, image=None, image_format=None):
        self._image = image
        self.format = image_format or (image.format if image is not None else None)

    @classmethod
    def from_bytes(cls, data):
        if not data:
            return cls()
        try:
            img = Image.open(BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            current_app.logger.warning("Could not decode image data: %s", e)
            return cls()
        return cls(img, img.format)

    @classmethod
    def from_path(cls, path):
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            current_app.logger.warning("Could not read image file %s: %s", path, e)
            return cls()
        return cls.from_bytes(data)

    def valid(self):
        return self._image is not None

    @property
    def width(self):
        return self._image.width if self._image is not None else 0

    @property
    def height(self):
        return self._image.height if self._image is not None else 0

    @property
    def mimetype(self):
        if self.format and self.format in Image.MIME:
            return Image.MIME[self.format]
        return "image/png"

    @property
    def output_format(self):
        """The format data() encodes to: the decoded one when Pillow can write it, else PNG."""
        if self.format and self.format in Image.SAVE:
            return self.format
        return "PNG"

    def contains(self, x, y, width, height):
        """Whether the box lies within the image and is not empty."""
        return (
            self.valid()
            and width > 0
            and height > 0
            and 0 <= x
            and 0 <= y
            and x + width <= self.width
            and y + height <= self.height
        )

    def fix_orientation(self):
        """Rotates the image upright according to its EXIF orientation tag."""
        if self._image is not None:
            self._image = ImageOps.exif_transpose(self._image)
        return self

    def resize(self, max_size):
        """Scales down proportionally so neither side exceeds max_size."""
        if self._image is not None:
            self._image.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
        return self

    def crop(self, x, y, width, height):
        if self._image is not None:
            self._image = self._image.crop((x, y, x + width, y + height))
        return self

    def data(self):
        """The image encoded in output_format."""
        if self._image is None:
            return b""
        image_format = self.output_format
        img = self._image
        # JPEG has no alpha channel or palette
        if image_format == "JPEG" and img.mode not in ("RGB", "L", "CMYK"):
            img = img.convert("RGB")
        buf = BytesIO()
        img.save(buf, format=image_format)
        return buf.getvalue()
