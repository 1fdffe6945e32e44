# filename: userbook/main/helpers.py
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

import os

from flask import abort, current_app, request
from werkzeug.security import safe_join

from userbook import cache
from userbook.backend import LocalUsersBackend
from userbook.directory import LdapDirectory
from userbook.photos import KEY_PREFIX


def get_config(key):
    """Helper to safely get config values."""
    return current_app.config.get(key, "")


def get_current_account_id():
    """
    The account the host authenticated for this request. Authentication
    itself happens in front of this application.
    """
    account_id = request.environ.get("REMOTE_USER") or request.headers.get(get_config("ACCOUNT_HEADER"))
    if not account_id:
        abort(401)
    return account_id


def get_directory():
    return LdapDirectory.from_config(current_app.config)


def get_backend():
    """The address book backend for the account of the current request."""
    return LocalUsersBackend(get_current_account_id(), get_directory())


def get_request_fields():
    """The JSON object or form of the request. Any other JSON body is a 400."""
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            abort(400, description="Expected a JSON object.")
        return data
    return request.form


def get_cached_photo(key):
    """The bytes of a temporary photo of the cache, or a 404."""
    get_current_account_id()
    data = cache.get(key) if key.startswith(KEY_PREFIX) else None
    if not data:
        abort(404)
    return data


def resolve_photo_path(relative_path):
    """Maps a client supplied path into PHOTO_FILESYSTEM_ROOT, or aborts."""
    if relative_path is not None and not isinstance(relative_path, str):
        abort(400, description="'path' must be a string.")
    root = get_config("PHOTO_FILESYSTEM_ROOT")
    path = safe_join(root, relative_path) if root and relative_path else None
    if path is None or not os.path.isfile(path):
        abort(404)
    return path


def get_int_args(source, *names):
    """Reads integer fields from a form or JSON dict, aborting on bad input."""
    values = []
    for name in names:
        try:
            values.append(int(source[name]))
        except (KeyError, TypeError, ValueError):
            abort(400, description=f"'{name}' must be an integer.")
    return values
# end file
