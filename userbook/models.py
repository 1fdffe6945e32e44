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

from userbook import db

# Index values are cut to this many characters before they are stored.
INDEX_VALUE_LENGTH = 254


class Card(db.Model):
    """
    A contact card mirrored from a directory user.
    Every account owns one virtual address book, so the owning account id is
    also the address book id.
    """

    __tablename__ = "contacts_ocu_cards"

    id = db.Column(db.String(255), primary_key=True)
    addressbookid = db.Column(db.String(255), primary_key=True, index=True)
    fullname = db.Column(db.String(255))
    carddata = db.Column(db.Text)
    # Epoch seconds
    lastmodified = db.Column(db.Integer)

    def to_dict(self):
        return {
            "id": self.id,
            "addressbookid": self.addressbookid,
            "fullname": self.fullname,
            "carddata": self.carddata,
            "lastmodified": self.lastmodified,
        }

    def __repr__(self):
        return f"<Card {self.addressbookid}/{self.id}>"


class CardProperty(db.Model):
    """One searchable property occurrence of a card."""

    __tablename__ = "contacts_ocu_cards_properties"

    id = db.Column(db.Integer, primary_key=True)
    addressbookid = db.Column(db.String(255), index=True)
    contactid = db.Column(db.String(255), index=True)
    name = db.Column(db.String(64))
    value = db.Column(db.String(INDEX_VALUE_LENGTH + 1))
    preferred = db.Column(db.Integer, default=0)

    def __repr__(self):
        return f"<CardProperty {self.contactid} {self.name}>"
