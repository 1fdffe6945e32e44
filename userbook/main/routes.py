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

from flask import Response, abort, jsonify, request
from werkzeug.utils import secure_filename

from userbook import cache
from userbook.cards import CardParseError, parse_card, set_card_photo
from userbook.image import PhotoImage
from userbook.main import bp
from userbook.main.helpers import (
    get_backend,
    get_cached_photo,
    get_current_account_id,
    get_int_args,
    get_request_fields,
    resolve_photo_path,
)
from userbook.photos import PhotoSource, get_temporary_photo


@bp.route("/addressbooks")
def list_addressbooks():
    return jsonify(get_backend().list_addressbooks())


@bp.route("/addressbooks/<addressbook_id>")
def get_addressbook(addressbook_id):
    return jsonify(get_backend().get_addressbook(addressbook_id))


@bp.route("/addressbooks/<addressbook_id>/contacts")
def list_contacts(addressbook_id):
    """All directory users as contacts, reconciled on every request."""
    return jsonify(get_backend().list_contacts(addressbook_id))


@bp.route("/addressbooks/<addressbook_id>/contacts/<contact_id>")
def get_contact(addressbook_id, contact_id):
    contact = get_backend().get_contact(addressbook_id, contact_id)
    if not contact:
        abort(404)
    return jsonify(contact)


@bp.route("/addressbooks/<addressbook_id>/contacts/<contact_id>/vcard")
def contact_vcard(addressbook_id, contact_id):
    """Returns the stored card as a vCard download."""
    contact = get_backend().get_contact(addressbook_id, contact_id)
    if not contact:
        abort(404)

    filename = secure_filename(f"{contact['fullname'] or contact['id']}.vcf") or "contact.vcf"
    return Response(
        contact["carddata"],
        mimetype="text/vcard",
        headers={"Content-disposition": f"attachment; filename={filename}"},
    )


@bp.route("/addressbooks/<addressbook_id>/contacts/<contact_id>", methods=["PUT"])
def update_contact(addressbook_id, contact_id):
    if not get_backend().update_contact(addressbook_id, contact_id, request.get_data()):
        abort(400, description="Contact was not saved.")
    return "", 204


@bp.route("/addressbooks/<addressbook_id>/search")
def search_contacts(addressbook_id):
    pattern = request.args.get("q", "")
    limit = request.args.get("limit", type=int)
    provider = get_backend().get_search_provider()
    return jsonify(provider.search(pattern, limit=limit))


def _temporary_photo_response(photo):
    if not photo.is_valid():
        abort(400, description="The photo could not be read.")
    key = photo.get_key()
    image = photo.get_photo()
    return jsonify({"key": key, "width": image.width, "height": image.height})


@bp.route("/photos/contact/<addressbook_id>/<contact_id>", methods=["POST"])
def photo_from_contact(addressbook_id, contact_id):
    photo = get_temporary_photo(PhotoSource.STORED_CONTACT, (get_backend(), addressbook_id, contact_id))
    return _temporary_photo_response(photo)


@bp.route("/photos/filesystem", methods=["POST"])
def photo_from_filesystem():
    get_current_account_id()
    path = resolve_photo_path(get_request_fields().get("path"))
    return _temporary_photo_response(get_temporary_photo(PhotoSource.FILESYSTEM, path))


@bp.route("/photos/upload", methods=["POST"])
def photo_from_upload():
    get_current_account_id()
    upload = request.files.get("photo")
    if upload is None or not upload.filename:
        abort(400, description="No photo was uploaded.")
    return _temporary_photo_response(get_temporary_photo(PhotoSource.UPLOADED, upload.stream))


@bp.route("/photos/temporary/<key>")
def temporary_photo(key):
    data = get_cached_photo(key)
    return Response(data, mimetype=PhotoImage.from_bytes(data).mimetype)


@bp.route("/photos/temporary/<key>/crop/<addressbook_id>/<contact_id>", methods=["POST"])
def crop_photo(key, addressbook_id, contact_id):
    """Crops a temporary photo and saves it as the contact's photo."""
    data = get_cached_photo(key)

    backend = get_backend()
    contact = backend.get_contact(addressbook_id, contact_id)
    if not contact:
        abort(404)

    x, y, w, h = get_int_args(get_request_fields(), "x", "y", "w", "h")
    image = PhotoImage.from_bytes(data)
    if not image.contains(x, y, w, h):
        abort(400, description="Invalid crop.")
    image.crop(x, y, w, h)

    try:
        vcard = parse_card(contact["carddata"])
    except CardParseError:
        abort(400, description="The stored contact could not be read.")
    set_card_photo(vcard, image.data(), image.output_format)

    if not backend.update_contact(addressbook_id, contact_id, vcard):
        abort(400, description="Contact was not saved.")
    cache.delete(key)
    return "", 204
