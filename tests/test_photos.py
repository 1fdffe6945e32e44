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
from unittest.mock import ANY, MagicMock

import pytest
from PIL import Image

from userbook import cache, db
from userbook.cards import new_card, serialize_card, set_card_photo
from userbook.image import PhotoImage
from userbook.models import Card
from userbook.photos import (
    ContactPhoto,
    FilesystemPhoto,
    InvalidPhotoError,
    PhotoSource,
    PhotoState,
    UnknownPhotoSource,
    UploadedPhoto,
    get_temporary_photo,
)


def test_get_photo_bounds_size(app, image_bytes):
    """
    GIVEN an uploaded 800x300 image
    WHEN the photo is requested twice
    THEN it is scaled to 400x150 both times
    """
    photo = UploadedPhoto(image_bytes(800, 300))

    first = photo.get_photo()
    assert (first.width, first.height) == (400, 150)

    second = photo.get_photo()
    assert (second.width, second.height) == (400, 150)
    assert photo.state is PhotoState.NORMALIZED


def test_small_photo_is_not_resized(app, image_bytes):
    photo = UploadedPhoto(image_bytes(120, 80))
    image = photo.get_photo()
    assert (image.width, image.height) == (120, 80)


def test_photo_is_rotated_upright(app):
    exif = Image.Exif()
    exif[0x0112] = 6  # rotated 90 degrees clockwise
    buf = BytesIO()
    Image.new("RGB", (800, 300), "blue").save(buf, format="JPEG", exif=exif)

    image = UploadedPhoto(buf.getvalue()).get_photo()

    assert (image.width, image.height) == (150, 400)


def test_get_key_caches_once(app, image_bytes):
    """
    GIVEN a valid photo
    WHEN the key is requested twice
    THEN the same key is returned and the cache is written once
    """
    fake_cache = MagicMock()
    photo = UploadedPhoto(image_bytes(800, 300), cache_backend=fake_cache)

    key = photo.get_key()

    assert key.startswith("photo-")
    assert photo.get_key() == key
    fake_cache.set.assert_called_once_with(key, ANY, timeout=600)
    assert photo.state is PhotoState.CACHED


def test_cached_photo_is_normalized(app, image_bytes):
    photo = UploadedPhoto(image_bytes(1000, 1000))

    key = photo.get_key()

    cached = PhotoImage.from_bytes(cache.get(key))
    assert cached.valid()
    assert (cached.width, cached.height) == (400, 400)
    assert cached.format == "JPEG"


def test_keys_differ_between_photos(app, image_bytes):
    data = image_bytes(50, 50)
    assert UploadedPhoto(data).get_key() != UploadedPhoto(data).get_key()


def test_invalid_upload(app):
    photo = UploadedPhoto(b"definitely not an image")

    assert photo.is_valid() is False
    with pytest.raises(InvalidPhotoError):
        photo.get_key()


def test_upload_from_stream(app, image_bytes):
    photo = UploadedPhoto(BytesIO(image_bytes(10, 20, image_format="PNG")))
    assert photo.is_valid()
    assert photo.get_photo().mimetype == "image/png"


def test_filesystem_photo(app, tmp_path, image_bytes):
    path = tmp_path / "portrait.jpg"
    path.write_bytes(image_bytes(600, 900))

    photo = FilesystemPhoto(str(path))

    assert photo.is_valid()
    assert (photo.get_photo().width, photo.get_photo().height) == (267, 400)


def test_missing_file_is_invalid(app, tmp_path):
    assert FilesystemPhoto(str(tmp_path / "missing.jpg")).is_valid() is False


def test_contact_photo(backend, image_bytes):
    vcard = set_card_photo(new_card("Bob Baker"), image_bytes(500, 500))
    db.session.add(Card(id="bob", addressbookid="alice", fullname="Bob Baker", carddata=serialize_card(vcard)))
    db.session.commit()

    photo = ContactPhoto(backend, "alice", "bob")

    assert photo.is_valid()
    assert (photo.get_photo().width, photo.get_photo().height) == (400, 400)


def test_contact_without_photo_is_invalid(backend):
    db.session.add(Card(id="bob", addressbookid="alice", fullname="Bob", carddata=serialize_card(new_card("Bob"))))
    db.session.commit()

    assert ContactPhoto(backend, "alice", "bob").is_valid() is False
    assert ContactPhoto(backend, "alice", "nobody").is_valid() is False


def test_factory_dispatches_on_source(backend, image_bytes, tmp_path):
    assert isinstance(get_temporary_photo(PhotoSource.STORED_CONTACT, (backend, "alice", "bob")), ContactPhoto)
    assert isinstance(get_temporary_photo(1, str(tmp_path / "a.jpg")), FilesystemPhoto)
    assert isinstance(get_temporary_photo(PhotoSource.UPLOADED, image_bytes(5, 5)), UploadedPhoto)


@pytest.mark.parametrize("source", [3, -1, "upload", None])
def test_factory_rejects_unknown_source(app, source):
    with pytest.raises(UnknownPhotoSource):
        get_temporary_photo(source, b"")


def test_max_size_comes_from_config(app, image_bytes):
    app.config["PHOTO_MAX_SIZE"] = 100
    image = UploadedPhoto(image_bytes(300, 200)).get_photo()
    assert (image.width, image.height) == (100, 67)


def test_unwritable_format_is_encoded_as_png(app):
    """
    GIVEN an image decoded from a format Pillow can read but not write
    WHEN it is re-encoded
    THEN PNG bytes are produced instead of an error
    """
    image = PhotoImage(Image.new("RGB", (20, 10), "green"), image_format="PSD")

    assert image.output_format == "PNG"
    reread = PhotoImage.from_bytes(image.data())
    assert reread.format == "PNG"
    assert (reread.width, reread.height) == (20, 10)


def test_readonly_upload_can_be_cached(app, mocker):
    psd_like = PhotoImage(Image.new("RGB", (800, 300), "green"), image_format="PSD")
    from_bytes = mocker.patch("userbook.photos.PhotoImage.from_bytes", return_value=psd_like)

    key = UploadedPhoto(b"psd data").get_key()

    from_bytes.assert_called_once_with(b"psd data")
    assert cache.get(key).startswith(b"\x89PNG")


def test_contains():
    image = PhotoImage(Image.new("RGB", (40, 30)))
    assert image.contains(0, 0, 40, 30)
    assert image.contains(10, 5, 30, 25)
    assert not image.contains(-1, 0, 10, 10)
    assert not image.contains(0, 0, 41, 30)
    assert not image.contains(35, 25, 10, 10)
    assert not image.contains(0, 0, 0, 5)
    assert not PhotoImage().contains(0, 0, 1, 1)
