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

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


class Config:
    """Base config."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "you-will-never-guess")
    FLASK_DEBUG = os.environ.get("FLASK_DEBUG", "False").lower() in ("true", "1", "t")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///" + os.path.join(basedir, "userbook.db"))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    APP_TITLE = os.environ.get("APP_TITLE", "Userbook")
    APP_VERSION = os.environ.get("APP_VERSION", "0.1.0")

    # The host authenticates requests. The account id is taken from REMOTE_USER
    # when the WSGI server sets it, otherwise from this header.
    ACCOUNT_HEADER = os.environ.get("ACCOUNT_HEADER", "X-Remote-User")

    # --- LDAP Configuration ---
    # The user for binding only needs read access to the user entries.
    LDAP_SERVER = os.environ.get("LDAP_SERVER", "ldap://localhost:389")
    LDAP_BIND_DN = os.environ.get("LDAP_BIND_DN", "cn=admin,dc=example,dc=com")
    LDAP_BIND_PASSWORD = os.environ.get("LDAP_BIND_PASSWORD", "admin")
    LDAP_USE_SSL = os.environ.get("LDAP_USE_SSL", "False").lower() in ("true", "1", "t")
    LDAP_USERS_DN = os.environ.get("LDAP_USERS_DN", "ou=users,dc=example,dc=com")

    # For Active Directory, this is often 'user' with 'sAMAccountName' as id.
    LDAP_USER_OBJECT_CLASS = os.environ.get("LDAP_USER_OBJECT_CLASS", "inetOrgPerson")
    LDAP_USER_ID_ATTRIBUTE = os.environ.get("LDAP_USER_ID_ATTRIBUTE", "uid")
    LDAP_DISPLAY_NAME_ATTRIBUTE = os.environ.get("LDAP_DISPLAY_NAME_ATTRIBUTE", "cn")

    # --- Address Book ---
    LOCAL_USERS_ADDRESSBOOK_NAME = os.environ.get("LOCAL_USERS_ADDRESSBOOK_NAME", "Local Users")
    # When false, updates only add a REV to cards that do not carry one yet.
    ALWAYS_STAMP_REVISION = os.environ.get("ALWAYS_STAMP_REVISION", "True").lower() in ("true", "1", "t")

    # --- Caching Configuration ---
    CACHE_TYPE = os.environ.get("CACHE_TYPE", "SimpleCache")
    CACHE_DEFAULT_TIMEOUT = int(os.environ.get("CACHE_DEFAULT_TIMEOUT", 300))

    # --- Temporary Photos ---
    PHOTO_MAX_SIZE = int(os.environ.get("PHOTO_MAX_SIZE", 400))
    PHOTO_CACHE_TIMEOUT = int(os.environ.get("PHOTO_CACHE_TIMEOUT", 600))
    PHOTO_FILESYSTEM_ROOT = os.environ.get("PHOTO_FILESYSTEM_ROOT", os.path.join(basedir, "photos"))
