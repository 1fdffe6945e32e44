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
Contact backend mirroring every directory user as a contact.

Every account has exactly one virtual address book whose id is the account
id. Its contacts are reconciled against the directory on every listing:
users missing a card get one, cards of users that left are removed.
"""

import enum
import time
from collections import namedtuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from userbook import db
from userbook.cards import (
    CardParseError,
    card_display_name,
    indexed_properties,
    new_card,
    parse_card,
    serialize_card,
    stamp_revision,
)
from userbook.directory import DirectoryError
from userbook.models import Card, CardProperty

PERMISSION_READ = 1
PERMISSION_UPDATE = 2
CONTACT_PERMISSIONS = PERMISSION_READ | PERMISSION_UPDATE


class SyncStatus(enum.Enum):
    UNCHANGED = "unchanged"
    RECONCILED = "reconciled"
    # Cards were added or removed, but one of those steps failed part way.
    INCOMPLETE = "incomplete"
    FAILED = "failed"


ContactListing = namedtuple("ContactListing", ["status", "contacts", "error"], defaults=[None])


def _with_permissions(row):
    row["permissions"] = CONTACT_PERMISSIONS
    return row


class LocalUsersBackend:
    """
    Address book backend for the directory users of this installation.

    If your account is "admin" and you want your own contact, the call is
    get_contact("admin", "admin"). Account "foo" reading user "bar" calls
    get_contact("foo", "bar").
    """

    name = "localusers"

    def __init__(self, account_id, directory):
        self.account_id = account_id
        self.directory = directory

    def list_addressbooks(self, options=None):
        return [self.get_addressbook(self.account_id)]

    def get_addressbook(self, addressbook_id, options=None):
        """Only one address book per account, so nothing is looked up."""
        name = current_app.config.get("LOCAL_USERS_ADDRESSBOOK_NAME", "Local Users")
        return {
            "id": addressbook_id,
            "displayname": name,
            "description": name,
            "ctag": int(time.time()),
            "permissions": PERMISSION_READ,
            "backend": self.name,
            "active": 1,
        }

    def _fetch_cards(self):
        cards = Card.query.filter_by(addressbookid=self.account_id).all()
        return [_with_permissions(card.to_dict()) for card in cards]

    def sync_contacts(self, addressbook_id):
        """
        Reconciles the account's cards with the directory and returns a
        ContactListing. A pass that changed anything is followed by exactly
        one more fetch; directory membership is taken as stable in between.
        """
        try:
            contacts = self._fetch_cards()
            account_ids = self.directory.list_account_ids()
        except (SQLAlchemyError, DirectoryError) as e:
            db.session.rollback()
            current_app.logger.error("LocalUsersBackend.sync_contacts: %s", e)
            return ContactListing(SyncStatus.FAILED, [], e)

        contact_ids = {contact["id"] for contact in contacts}
        to_add = account_ids - contact_ids
        to_remove = contact_ids - account_ids
        if not to_add and not to_remove:
            return ContactListing(SyncStatus.UNCHANGED, contacts)

        status = SyncStatus.RECONCILED
        if to_add and not self._add_contacts(sorted(to_add)):
            status = SyncStatus.INCOMPLETE
        if to_remove and not self._remove_contacts(sorted(to_remove)):
            status = SyncStatus.INCOMPLETE

        try:
            return ContactListing(status, self._fetch_cards())
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error("LocalUsersBackend.sync_contacts: DB error: %s", e)
            return ContactListing(SyncStatus.FAILED, [], e)

    def list_contacts(self, addressbook_id, options=None):
        """
        There are as many contacts in this address book as users in the
        directory. Always serves the account's own book.
        """
        try:
            return self.sync_contacts(addressbook_id).contacts
        except Exception as e:  # pylint: disable=broad-exception-caught
            db.session.rollback()
            current_app.logger.error("LocalUsersBackend.list_contacts: exception: %s", e)
            return []

    def get_contact(self, addressbook_id, contact_id, options=None):
        try:
            card = Card.query.filter_by(addressbookid=self.account_id, id=contact_id).first()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error("LocalUsersBackend.get_contact: DB error: %s", e)
            return {}
        except Exception as e:  # pylint: disable=broad-exception-caught
            current_app.logger.error("LocalUsersBackend.get_contact: exception: %s", e)
            return {}

        if card is None:
            return {}
        return _with_permissions(card.to_dict())

    def _add_contacts(self, account_ids):
        """Creates a card for each new directory user. Stops at the first failure."""
        for account_id in account_ids:
            try:
                display_name = self.directory.display_name(account_id)
                vcard = new_card(display_name)
                db.session.add(
                    Card(
                        id=account_id,
                        addressbookid=self.account_id,
                        fullname=display_name,
                        carddata=serialize_card(vcard),
                        lastmodified=int(time.time()),
                    )
                )
                db.session.commit()
            except (SQLAlchemyError, DirectoryError) as e:
                db.session.rollback()
                current_app.logger.error("LocalUsersBackend._add_contacts: %s: %s", account_id, e)
                return False
            except Exception as e:  # pylint: disable=broad-exception-caught
                db.session.rollback()
                current_app.logger.error("LocalUsersBackend._add_contacts: exception: %s: %s", account_id, e)
                return False
            self.update_index(account_id, vcard)
        return True

    def _remove_contacts(self, contact_ids):
        """Drops the cards of users no longer in the directory. Stops at the first failure."""
        for contact_id in contact_ids:
            try:
                Card.query.filter_by(addressbookid=self.account_id, id=contact_id).delete()
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                current_app.logger.error("LocalUsersBackend._remove_contacts: DB error: %s: %s", contact_id, e)
                return False
            except Exception as e:  # pylint: disable=broad-exception-caught
                db.session.rollback()
                current_app.logger.error("LocalUsersBackend._remove_contacts: exception: %s: %s", contact_id, e)
                return False
            self.purge_index(contact_id)
        return True

    def update_contact(self, addressbook_id, contact_id, contact, options=None):
        """
        Stores a changed card. `contact` is a vobject card or raw vCard data.
        Returns False if the card can't be parsed or stored.
        """
        if isinstance(contact, (str, bytes)):
            try:
                contact = parse_card(contact)
            except CardParseError as e:
                current_app.logger.error("LocalUsersBackend.update_contact: %s", e)
                return False

        try:
            stamp_revision(contact, force=current_app.config.get("ALWAYS_STAMP_REVISION", True))
            updated = Card.query.filter_by(id=contact_id, addressbookid=self.account_id).update(
                {
                    "fullname": card_display_name(contact),
                    "carddata": serialize_card(contact),
                    "lastmodified": int(time.time()),
                }
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error("LocalUsersBackend.update_contact: DB error: %s", e)
            return False
        except Exception as e:  # pylint: disable=broad-exception-caught
            db.session.rollback()
            current_app.logger.error("LocalUsersBackend.update_contact: exception: %s", e)
            return False

        if not updated:
            current_app.logger.warning(
                "LocalUsersBackend.update_contact: no contact %s in address book %s", contact_id, self.account_id
            )
            return False

        self.update_index(contact_id, contact)
        return True

    def update_index(self, contact_id, vcard):
        """Replaces all index rows of a contact with the ones derived from the card."""
        self.purge_index(contact_id)
        try:
            for name, value, preferred in indexed_properties(vcard):
                db.session.add(
                    CardProperty(
                        addressbookid=self.account_id,
                        contactid=contact_id,
                        name=name,
                        value=value,
                        preferred=preferred,
                    )
                )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error("LocalUsersBackend.update_index: DB error: %s", e)
            return False
        except Exception as e:  # pylint: disable=broad-exception-caught
            db.session.rollback()
            current_app.logger.error("LocalUsersBackend.update_index: exception: %s", e)
            return False
        return True

    def purge_index(self, contact_id):
        """Removes all index rows of a contact. Best effort."""
        try:
            CardProperty.query.filter_by(addressbookid=self.account_id, contactid=contact_id).delete()
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.debug("LocalUsersBackend.purge_index: %s", e)
            return False
        return True

    def reindex(self):
        """Rebuilds the index of every card in the account's book."""
        count = 0
        for card in Card.query.filter_by(addressbookid=self.account_id).all():
            try:
                vcard = parse_card(card.carddata)
            except CardParseError as e:
                current_app.logger.warning("LocalUsersBackend.reindex: skipping %s: %s", card.id, e)
                continue
            if self.update_index(card.id, vcard):
                count += 1
        return count

    def get_search_provider(self):
        return LocalUsersSearchProvider(self.account_id)


class LocalUsersSearchProvider:
    """Free-text lookup of an account's contacts through the property index."""

    def __init__(self, account_id):
        self.account_id = account_id

    def search(self, pattern, properties=("FN", "EMAIL"), limit=None):
        if not pattern:
            return []

        matches = db.select(CardProperty.contactid).where(
            CardProperty.addressbookid == self.account_id,
            CardProperty.name.in_([name.upper() for name in properties]),
            CardProperty.value.icontains(pattern, autoescape=True),
        )
        try:
            query = Card.query.filter(
                Card.addressbookid == self.account_id,
                Card.id.in_(matches),
            ).order_by(Card.fullname)
            if limit:
                query = query.limit(limit)
            return [_with_permissions(card.to_dict()) for card in query.all()]
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error("LocalUsersSearchProvider.search: DB error: %s", e)
            return []
