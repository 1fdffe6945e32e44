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

import ldap3
from flask import current_app
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars


class DirectoryError(Exception):
    """Raised when the user directory cannot be read."""


def get_ldap_connection(read_only=True):
    """
    Establishes a connection to the LDAP server, bound with the service
    account from config. Returns None when the server cannot be reached.
    """
    server_uri = current_app.config.get("LDAP_SERVER")
    use_ssl = current_app.config.get("LDAP_USE_SSL", False)
    user_dn = current_app.config.get("LDAP_BIND_DN")
    password = current_app.config.get("LDAP_BIND_PASSWORD")

    try:
        server = ldap3.Server(server_uri, get_info=ldap3.ALL, use_ssl=use_ssl)
        connection = ldap3.Connection(server, user=user_dn, password=password, auto_bind=True, read_only=read_only)
        return connection
    except LDAPException as e:
        current_app.logger.error("Failed to connect or bind to LDAP server: %s", e)
        return None


class LdapDirectory:
    """
    The host's user directory. Every user entry below LDAP_USERS_DN becomes
    one contact in each account's address book.
    """

    def __init__(self, users_dn, object_class, id_attribute, display_name_attribute):
        self.users_dn = users_dn
        self.object_class = object_class
        self.id_attribute = id_attribute
        self.display_name_attribute = display_name_attribute

    @classmethod
    def from_config(cls, config):
        return cls(
            users_dn=config["LDAP_USERS_DN"],
            object_class=config["LDAP_USER_OBJECT_CLASS"],
            id_attribute=config["LDAP_USER_ID_ATTRIBUTE"],
            display_name_attribute=config["LDAP_DISPLAY_NAME_ATTRIBUTE"],
        )

    def _search(self, search_filter, attributes):
        conn = get_ldap_connection(read_only=True)
        if not conn:
            raise DirectoryError(f"Could not bind to the directory to search {self.users_dn}")

        try:
            conn.search(
                search_base=self.users_dn,
                search_filter=search_filter,
                search_scope=ldap3.LEVEL,
                attributes=attributes,
            )
            return list(conn.entries)
        except LDAPException as e:
            raise DirectoryError(f"LDAP search failed: {e}") from e
        finally:
            conn.unbind()

    def list_account_ids(self):
        """Returns the ids of all users in the directory as a set."""
        entries = self._search(f"(objectClass={self.object_class})", [self.id_attribute])
        account_ids = set()
        for entry in entries:
            values = entry[self.id_attribute].values if entry[self.id_attribute] else []
            if values:
                account_ids.add(str(values[0]))
        return account_ids

    def display_name(self, account_id):
        """Returns the display name of a user, or the id itself when it has none."""
        search_filter = (
            f"(&(objectClass={self.object_class})"
            f"({self.id_attribute}={escape_filter_chars(account_id)}))"
        )
        entries = self._search(search_filter, [self.display_name_attribute])
        if entries and entries[0][self.display_name_attribute]:
            return str(entries[0][self.display_name_attribute].values[0])
        return account_id
