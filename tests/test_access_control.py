"""
Tests for registration, login and credentials.

Tests cover:
- Registration normalization and validation order
- Login outcomes and precedence
- Change password and profile updates
- Passwords, tokens and document checks
- Document storage uploads
"""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from access_control.documents import CloudinaryDocumentStore, UploadedDocument, validate_document
from access_control.passwords import generate_password, hash_password, verify_password
from access_control.service import AccessService, profile_changes
from access_control.tokens import TokenIssuer, cookie_options
from core.config import AuthConfig, DocumentStorageConfig
from core.exceptions import (
    DuplicateUserError,
    ForbiddenError,
    InternalError,
    InvalidCredentialError,
    NotVerifiedError,
    ServiceNotConfiguredError,
    ValidationError,
)
from storage.models.accounts import UserStatus
from tests.fakes import NOW, PASSWORD, FakeDocumentStore, all_documents, document, registration_form


@pytest.fixture
def tokens():
    return TokenIssuer(AuthConfig(token_secret="unit-secret"))


@pytest.fixture
def service(session, tokens, clock):
    return AccessService(session, tokens, clock)


# =============================================================
# TEST: Register
# =============================================================

class TestRegister:

    @pytest.mark.asyncio
    async def test_creates_unverified_normalized_user(self, service, documents):
        form = registration_form(aadharNo="1234 5678 9012")

        user = await service.register(form, all_documents(), documents)

        assert user.email == form["email"].lower()
        assert user.pan == form["pan"].upper()
        assert user.ifsc_code == "UBIN0000123"
        assert user.aadhar_no == "123456789012"
        assert user.name == "Asha Rao"
        assert user.dob == date(1991, 4, 12)
        assert user.is_verified is False
        assert user.user_photo == "https://files.test/userPhoto/scan.png"
        assert len(documents.uploaded) == 4

    @pytest.mark.asyncio
    async def test_client_password_is_ignored(self, service, documents):
        form = registration_form(password="chosen-by-client")

        user = await service.register(form, all_documents(), documents)

        assert not verify_password("chosen-by-client", user.password_hash)

    @pytest.mark.asyncio
    async def test_missing_documents_reported_first(self, service, documents):
        docs = all_documents()
        del docs["passbookPhoto"]

        with pytest.raises(ValidationError) as exc:
            await service.register({}, docs, documents)

        assert exc.value.message.startswith("Please upload all required documents")
        assert exc.value.fields == ["passbookPhoto"]

    @pytest.mark.asyncio
    async def test_missing_fields(self, service, documents):
        form = registration_form(nomineeDob="", ifscCode="  ")

        with pytest.raises(ValidationError) as exc:
            await service.register(form, all_documents(), documents)

        assert exc.value.message == "Please provide all required fields"
        assert exc.value.fields == ["nomineeDob", "ifscCode"]
        assert documents.uploaded == []

    @pytest.mark.asyncio
    async def test_duplicate_identity_rejected_before_upload(self, service, documents, make_user):
        existing = make_user()
        form = registration_form(pan=existing.pan.lower())

        with pytest.raises(DuplicateUserError) as exc:
            await service.register(form, all_documents(), documents)
        assert exc.value.field == "pan"
        assert exc.value.message == "A user with this PAN already exists"
        assert documents.uploaded == []

    @pytest.mark.asyncio
    async def test_bad_document_format_rejected_before_any_upload(self, service, documents):
        docs = all_documents()
        docs["panPhoto"] = document("panPhoto", filename="pan.pdf")

        with pytest.raises(ValidationError):
            await service.register(registration_form(), docs, documents)
        assert documents.uploaded == []

    @pytest.mark.asyncio
    async def test_storage_not_configured(self, service):
        with pytest.raises(ServiceNotConfiguredError) as exc:
            await service.register(registration_form(), all_documents(), FakeDocumentStore(configured=False))
        assert exc.value.message.startswith("File upload service is not configured")

    @pytest.mark.asyncio
    async def test_invalid_email(self, service, documents):
        with pytest.raises(ValidationError) as exc:
            await service.register(registration_form(email="not-an-email"), all_documents(), documents)
        assert exc.value.fields == ["email"]


# =============================================================
# TEST: Login
# =============================================================

class TestLogin:

    def test_success_records_last_login(self, service, tokens, make_user, session):
        user = make_user(is_verified=True)

        result = service.login(f"  {user.email.upper()} ", PASSWORD)

        assert result.user.id == user.id
        assert tokens.verify(result.token).user_id == user.id
        session.refresh(user)
        assert user.last_login.replace(tzinfo=None) == NOW.replace(tzinfo=None)

    def test_unknown_email_and_wrong_password_look_the_same(self, service, make_user):
        user = make_user(is_verified=True)

        with pytest.raises(InvalidCredentialError) as unknown:
            service.login("nobody@example.com", PASSWORD)
        with pytest.raises(InvalidCredentialError) as wrong:
            service.login(user.email, "wrong-password")

        assert unknown.value.message == wrong.value.message
        assert unknown.value.status_code == 401

    def test_unverified_checked_before_password(self, service, make_user):
        user = make_user(is_verified=False)

        with pytest.raises(NotVerifiedError) as exc:
            service.login(user.email, "wrong-password")
        assert exc.value.status_code == 402

    def test_suspended_account(self, service, make_user):
        user = make_user(is_verified=True, status=UserStatus.SUSPENDED)

        with pytest.raises(ForbiddenError):
            service.login(user.email, PASSWORD)

    @pytest.mark.parametrize("email,password", [("", PASSWORD), ("a@example.com", ""), (None, None)])
    def test_missing_fields(self, service, email, password):
        with pytest.raises(ValidationError):
            service.login(email, password)


# =============================================================
# TEST: Change password
# =============================================================

class TestChangePassword:

    def test_change(self, service, make_user, session):
        user = make_user(is_verified=True)

        service.change_password(user, PASSWORD, "NewSecret456")

        session.refresh(user)
        assert verify_password("NewSecret456", user.password_hash)
        assert service.login(user.email, "NewSecret456").user.id == user.id

    def test_wrong_old_password(self, service, make_user):
        user = make_user(is_verified=True)

        with pytest.raises(InvalidCredentialError) as exc:
            service.change_password(user, "nope", "NewSecret456")
        assert exc.value.message == "Invalid old password"

    def test_same_password(self, service, make_user):
        user = make_user(is_verified=True)

        with pytest.raises(ValidationError) as exc:
            service.change_password(user, PASSWORD, PASSWORD)
        assert exc.value.message == "Old password and new password cannot be same"


# =============================================================
# TEST: Profile
# =============================================================

class TestProfile:

    def test_profile_changes_maps_sections(self):
        changes = profile_changes({
            "personal": {"name": "New Name", "email": " NEW@Example.com ", "phone": ""},
            "kyc": {"panNumber": "abcde1234f"},
            "bank": {"ifsc": "hdfc0001", "name": "HDFC"},
        })

        assert changes == {
            "name": "New Name",
            "email": "new@example.com",
            "pan": "ABCDE1234F",
            "ifsc_code": "HDFC0001",
            "bank_name": "HDFC",
        }

    def test_update_rejects_taken_email(self, service, make_user):
        taken = make_user()
        user = make_user()

        with pytest.raises(DuplicateUserError) as exc:
            service.update_profile(user, {"personal": {"email": taken.email}})
        assert exc.value.field == "email"

    def test_update_own_values_allowed(self, service, make_user, session):
        user = make_user()

        service.update_profile(user, {"personal": {"email": user.email, "address": "9 Hill Street"}})

        session.refresh(user)
        assert user.address == "9 Hill Street"

    def test_role_is_not_editable(self, service, make_user):
        user = make_user()

        with pytest.raises(ValidationError):
            service.update_profile(user, {"personal": {"role": "admin"}})


# =============================================================
# TEST: Credentials
# =============================================================

class TestCredentials:

    def test_generated_password_shape(self):
        password = generate_password()
        assert len(password) == 12
        assert password.isalnum()
        assert generate_password() != password

    def test_hash_round_trip(self):
        hashed = hash_password("abc123XYZ")
        assert verify_password("abc123XYZ", hashed)
        assert not verify_password("abc123XY", hashed)
        assert not verify_password("abc123XYZ", "not-a-hash")

    def test_token_rejects_other_secret(self, tokens, make_user):
        user = make_user()
        token = TokenIssuer(AuthConfig(token_secret="other")).issue(user.id, user.role)

        with pytest.raises(InvalidCredentialError):
            tokens.verify(token)

    def test_expired_token(self, tokens, make_user):
        user = make_user()
        token = tokens.issue(user.id, user.role, now=1_000_000)

        with pytest.raises(InvalidCredentialError):
            tokens.verify(token)

    def test_cookie_flags(self):
        assert cookie_options(True)["secure"] is True
        assert cookie_options(True)["samesite"] == "none"
        assert cookie_options(False, max_age=60) == {
            "httponly": True, "secure": False, "samesite": "lax", "path": "/", "max_age": 60,
        }


class TestDocuments:

    @pytest.mark.parametrize("filename", ["a.jpg", "a.JPEG", "a.png"])
    def test_allowed_formats(self, filename):
        content_type = "image/png" if filename.endswith("png") else "image/jpeg"
        doc = UploadedDocument(field="userPhoto", filename=filename, content_type=content_type, content=b"data")
        validate_document(doc, DocumentStorageConfig())

    def test_too_large(self):
        config = DocumentStorageConfig(max_file_bytes=4)
        with pytest.raises(ValidationError):
            validate_document(document("userPhoto", content=b"12345"), config)

    def test_empty(self):
        with pytest.raises(ValidationError):
            validate_document(document("userPhoto", content=b""), DocumentStorageConfig())


# =============================================================
# TEST: Document storage
# =============================================================

class TestCloudinaryDocumentStore:

    CONFIG = DocumentStorageConfig(cloud_name="desk", api_key="key-1", api_secret="shh")

    def make_store(self, response=None, error=None, config=CONFIG):
        store = CloudinaryDocumentStore(config)
        session = MagicMock()
        if error is not None:
            session.post.side_effect = error
        else:
            session.post.return_value.__aenter__.return_value = response
            session.post.return_value.__aexit__.return_value = False
        store._get_session = AsyncMock(return_value=session)
        return store, session

    def response(self, status=200, data=None, text=""):
        response = MagicMock()
        response.status = status
        response.json = AsyncMock(return_value=data)
        response.text = AsyncMock(return_value=text)
        return response

    @pytest.mark.asyncio
    async def test_secure_url_is_returned(self):
        store, session = self.make_store(self.response(data={"secure_url": "https://res.test/a.png", "url": "http://res.test/a.png"}))

        url = await store.upload(document("panPhoto"))

        assert url == "https://res.test/a.png"
        assert session.post.call_args.args[0] == "https://api.cloudinary.com/v1_1/desk/image/upload"

    @pytest.mark.asyncio
    async def test_plain_url_fallback(self):
        store, _ = self.make_store(self.response(data={"url": "http://res.test/a.png"}))

        assert await store.upload(document("panPhoto")) == "http://res.test/a.png"

    @pytest.mark.asyncio
    async def test_error_status_fails_upload(self):
        store, _ = self.make_store(self.response(status=401, text="Invalid Signature"))

        with pytest.raises(InternalError) as exc:
            await store.upload(document("panPhoto"))

        assert exc.value.message == "Failed to upload documents"

    @pytest.mark.asyncio
    async def test_transport_error_fails_upload(self):
        store, _ = self.make_store(error=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(InternalError):
            await store.upload(document("panPhoto"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", [{}, None])
    async def test_missing_url(self, data):
        response = self.response(data=data)
        if data is None:
            response.json = AsyncMock(side_effect=ValueError("not json"))
        store, _ = self.make_store(response)

        with pytest.raises(InternalError) as exc:
            await store.upload(document("panPhoto"))

        assert exc.value.message == "Document storage returned no URL"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        store, session = self.make_store(self.response(), config=DocumentStorageConfig())

        with pytest.raises(ServiceNotConfiguredError):
            await store.upload(document("panPhoto"))

        session.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_file_is_not_sent(self):
        store, session = self.make_store(self.response())

        with pytest.raises(ValidationError):
            await store.upload(document("panPhoto", filename="scan.pdf"))

        session.post.assert_not_called()
