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
from unittest.mock import MagicMock

import pytest
from PIL import Image

from config import Config
from userbook import cache, create_app, db
from userbook.backend import LocalUsersBackend


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    CACHE_TYPE = "SimpleCache"
    APP_TITLE = "Userbook"
    APP_VERSION = "1.2.3"
    ALWAYS_STAMP_REVISION = True
    LDAP_USERS_DN = "ou=users,dc=example,dc=com"


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        cache.clear()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def directory():
    """A directory with three users."""
    names = {"alice": "Alice Archer", "bob": "Bob Baker", "carol": "Carol Cook"}
    fake = MagicMock()
    fake.names = names
    fake.list_account_ids.side_effect = lambda: set(names)
    fake.display_name.side_effect = lambda account_id: names.get(account_id, account_id)
    return fake


@pytest.fixture
def backend(app, directory):
    """The backend as seen by alice."""
    return LocalUsersBackend("alice", directory)


@pytest.fixture
def mock_ldap_connection(mocker):
    """Fixture to mock the LDAP connection."""
    mock_conn = MagicMock()
    mocker.patch("userbook.directory.get_ldap_connection", return_value=mock_conn)
    return mock_conn


@pytest.fixture
def image_bytes():
    """Factory encoding a plain image of the given size."""

    def make_image_bytes(width, height, image_format="JPEG", color="red"):
        buf = BytesIO()
        Image.new("RGB", (width, height), color).save(buf, format=image_format)
        return buf.getvalue()

    return make_image_bytes
