# Overview: Authorized downloads of stored case documents, payment documents and payment proofs.

from flask import Blueprint, g, send_from_directory

from ..decorators import require_staff_or_applicant
from ..errors import DOMAIN_ERRORS, domain_error_response
from ..services import case_service, storage_service


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


@documents_bp.get("/<stored_name>")
@require_staff_or_applicant
def download_document_route(stored_name: str):
    try:
        filename, mime_type = case_service.resolve_document(g.actor, stored_name)
    except DOMAIN_ERRORS as e:
        return domain_error_response(e)

    return send_from_directory(storage_service.upload_root(), filename, mimetype=mime_type)
