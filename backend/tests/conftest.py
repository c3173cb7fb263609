"""
Pytest fixtures for Rahmah Exchange backend tests.

Provides test database setup, two tenants with one staff user per role,
bearer-session headers and a case factory.
"""

import io

import pytest
from werkzeug.datastructures import FileStorage

from rahmah import create_app
from rahmah.extensions import db
from rahmah.models import Tenant, NotificationOutbox
from rahmah.permissions import ActorContext, Role
from rahmah.services import case_service
from rahmah.services.auth_service import create_user
from rahmah.services.session_service import create_session


PASSWORD = "Password123!"
PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_LOG_ROUNDS': 4,
        'NOTIFICATION_DISPATCH': 'manual',
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp('uploads')),
        'APP_BASE_URL': 'http://portal.test',
        'ADMIN_EMAIL': 'zakat-admin@rahmah.test',
        'DEFAULT_TENANT_SLUG': None,
        'SMTP_HOST': '',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Create Tenant A (first organization)."""
    tenant = Tenant(name="Masjid Al-Noor", slug="al-noor", email="office@al-noor.test", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Create Tenant B (second organization)."""
    tenant = Tenant(name="Baitul Mal", slug="baitul-mal", email="office@baitul-mal.test", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def admin_a(db_session, tenant_a):
    return create_user("Aisha Admin", "admin@al-noor.test", PASSWORD, Role.ADMIN, tenant_id=tenant_a.id)


@pytest.fixture(scope='function')
def caseworker_a(db_session, tenant_a):
    return create_user("Omar Caseworker", "omar@al-noor.test", PASSWORD, Role.CASEWORKER, tenant_id=tenant_a.id)


@pytest.fixture(scope='function')
def approver_a(db_session, tenant_a):
    return create_user("Fatima Approver", "fatima@al-noor.test", PASSWORD, Role.APPROVER, tenant_id=tenant_a.id)


@pytest.fixture(scope='function')
def treasurer_a(db_session, tenant_a):
    return create_user("Yusuf Treasurer", "yusuf@al-noor.test", PASSWORD, Role.TREASURER, tenant_id=tenant_a.id)


@pytest.fixture(scope='function')
def admin_b(db_session, tenant_b):
    return create_user("Bilal Admin", "admin@baitul-mal.test", PASSWORD, Role.ADMIN, tenant_id=tenant_b.id)


@pytest.fixture(scope='function')
def super_admin(db_session):
    return create_user("Root Operator", "root@rahmah.test", PASSWORD, Role.SUPER_ADMIN)


@pytest.fixture(scope='function')
def auth_headers(db_session):
    """Returns a helper that opens a session for a user and builds the Authorization header."""
    def _headers(user) -> dict:
        _, token = create_session(user_id=user.id)
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture(scope='function')
def actor_for():
    """Returns a helper building the ActorContext a staff session would carry."""
    def _actor(user) -> ActorContext:
        return ActorContext(
            user_id=user.id,
            role=user.role,
            tenant_id=user.tenant_id,
            email=user.email,
            name=user.name,
        )
    return _actor


@pytest.fixture(scope='function')
def make_case(db_session, tenant_a):
    """Returns a helper that submits an intake for Tenant A (or another tenant)."""
    counter = {"n": 0}

    def _make(tenant=None, **overrides):
        counter["n"] += 1
        payload = {
            "tenantSlug": (tenant or tenant_a).slug,
            "firstName": "Maryam",
            "lastName": f"Applicant{counter['n']}",
            "mobilePhone": "555-0100",
            "email": f"maryam{counter['n']}@example.test",
            "amountRequested": "1500.00",
        }
        payload.update(overrides)
        applicant, _ = case_service.intake(payload)
        return applicant
    return _make


@pytest.fixture(scope='function')
def make_upload():
    """Returns a helper building an in-memory werkzeug upload."""
    def _upload(filename="id.pdf", data=PDF_BYTES, content_type="application/pdf") -> FileStorage:
        return FileStorage(stream=io.BytesIO(data), filename=filename, content_type=content_type)
    return _upload


def outbox(template: str | None = None) -> list:
    """Queued notification rows, optionally for one template."""
    query = db.session.query(NotificationOutbox)
    if template:
        query = query.filter_by(template=template)
    return query.order_by(NotificationOutbox.id).all()


@pytest.fixture(scope='function')
def queued():
    return outbox
