"""Public profiles, profile edits and payout settings."""

import pytest

from reventa.services import profile_service
from reventa.validation import ValidationError


class TestPublicProfile:
    def test_by_handle(self, client, db_session, make_user):
        make_user(handle="lucia", instagram="@lucia", bio="Ropa y lencería")

        resp = client.get("/api/profile/public/Lucia")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["handle"] == "lucia"
        assert body["instagram"] == "@lucia"
        assert body["bio"] == "Ropa y lencería"
        assert "email" not in body
        assert "cbu" not in body

    def test_unknown(self, client, db_session):
        resp = client.get("/api/profile/public/nadie")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Perfil no encontrado"


class TestProfile:
    def test_get(self, client, db_session, user):
        body = client.get(f"/api/profile?userId={user.id}").get_json()
        assert body["id"] == user.id
        assert body["email"] == user.email
        assert body["margen"] == 60

    def test_get_requires_user(self, client, db_session):
        resp = client.get("/api/profile")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "userId es requerido"

    def test_get_unknown_user(self, client, db_session):
        assert client.get("/api/profile?userId=999").status_code == 404

    def test_partial_update(self, client, db_session, user):
        resp = client.patch("/api/profile", json={
            "userId": user.id,
            "bio": "Nueva bio",
            "whatsappBusiness": "1155556666",
            "email": "ignored@test.com",
        })
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["bio"] == "Nueva bio"
        assert body["whatsappBusiness"] == "1155556666"
        assert body["email"] == user.email
        assert body["name"] == user.name

    def test_blank_clears_optional_field(self, db_session, make_user):
        owner = make_user(website="https://tienda.test")
        updated = profile_service.update_profile(owner.id, {"website": "  "})
        assert updated.website is None

    def test_handle_normalized(self, db_session, user):
        updated = profile_service.update_profile(user.id, {"handle": "  NuevoHandle "})
        assert updated.handle == "nuevohandle"

    def test_handle_taken(self, client, db_session, user, make_user):
        make_user(handle="ocupado")
        resp = client.patch("/api/profile", json={"userId": user.id, "handle": "Ocupado"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Este handle ya está en uso"

    def test_keep_own_handle(self, db_session, user):
        updated = profile_service.update_profile(user.id, {"handle": "vendedora"})
        assert updated.handle == "vendedora"

    def test_required_field_cannot_be_blank(self, db_session, user):
        with pytest.raises(ValidationError):
            profile_service.update_profile(user.id, {"name": ""})

    def test_margin_range(self, client, db_session, user):
        resp = client.patch("/api/profile", json={"userId": user.id, "margen": 1001})
        assert resp.status_code == 400

    def test_invalid_photo(self, db_session, user):
        with pytest.raises(ValidationError):
            profile_service.update_profile(user.id, {"profilePhoto": "https://example.test/foto.png"})


class TestPhotoUpload:
    def test_accepts_data_uri(self, client, db_session, user):
        photo = "data:image/png;base64,iVBORw0KGgo="
        resp = client.post("/api/profile/upload-photo", json={"userId": user.id, "photo": photo})
        assert resp.status_code == 200
        assert resp.get_json() == {"success": True, "url": photo}

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/profile/upload-photo", json={"photo": "data:image/png;base64,xx"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "userId y photo son requeridos"

    def test_rejects_other_formats(self, client, db_session, user):
        resp = client.post("/api/profile/upload-photo", json={"userId": user.id, "photo": "aGVsbG8="})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Formato de imagen inválido"


class TestPayout:
    def test_update(self, client, db_session, user):
        resp = client.put("/api/user/update", json={
            "userId": user.id,
            "margen": "80",
            "cbu": "0000003100000000000001",
            "alias": "mi.alias",
        })
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        assert body["user"]["margen"] == 80
        assert body["user"]["cbu"] == "0000003100000000000001"
        assert body["user"]["alias"] == "mi.alias"
        assert body["user"]["handle"] == "vendedora"

    def test_omitted_fields_untouched(self, db_session, make_user):
        owner = make_user(alias="viejo.alias")
        updated = profile_service.update_payout(owner.id, margen=100)
        assert updated.margen == 100
        assert updated.alias == "viejo.alias"

    def test_negative_margin(self, client, db_session, user):
        resp = client.put("/api/user/update", json={"userId": user.id, "margen": -5})
        assert resp.status_code == 400

    def test_requires_user(self, client, db_session):
        assert client.put("/api/user/update", json={"margen": 50}).status_code == 400
