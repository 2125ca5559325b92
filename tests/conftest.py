import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings, get_settings
from database import ensure_indexes, get_db, insert_document
from errors import UpstreamError
from geocoder import GeoLocation, get_geocoder
from mailer import get_mailer
from main import app
from security import create_access_token, hash_password
from uploads import FileStore, get_file_store

PASSWORD = "secret123"


class FakeGeocoder:
    def __init__(self):
        self.calls = []
        self.error = None

    def geocode(self, address):
        self.calls.append(address)
        if self.error:
            raise self.error
        return GeoLocation(
            latitude=42.3601,
            longitude=-71.0589,
            formatted_address=f"{address}, Boston, MA 02118, US",
            street=address,
            city="Boston",
            state="MA",
            zipcode="02118",
            country="US",
        )


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, email, subject, message):
        if self.fail:
            raise UpstreamError("Email could not be sent")
        self.sent.append({"email": email, "subject": subject, "message": message})


@pytest.fixture()
def settings(tmp_path):
    return Settings(file_upload_path=str(tmp_path / "uploads"), max_file_upload=1000)


@pytest.fixture()
def db():
    database = mongomock.MongoClient()["devcamper_test"]
    ensure_indexes(database)
    return database


@pytest.fixture()
def geocoder():
    return FakeGeocoder()


@pytest.fixture()
def mailer():
    return FakeMailer()


@pytest.fixture()
def client(db, settings, geocoder, mailer):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_geocoder] = lambda: geocoder
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_file_store] = lambda: FileStore(settings.file_upload_path)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db, settings):
    """ Insert a user directly; returns (user document, auth headers) """
    def make(name="Test User", email="test@example.com", role="user"):
        user = insert_document(db, "user", {
            "name": name,
            "email": email,
            "role": role,
            "password_hash": hash_password(PASSWORD),
        })
        token = create_access_token(str(user["_id"]), settings)
        return user, {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture()
def publisher(make_user):
    return make_user("Publisher One", "publisher@example.com", "publisher")


@pytest.fixture()
def other_publisher(make_user):
    return make_user("Publisher Two", "publisher2@example.com", "publisher")


@pytest.fixture()
def reviewer(make_user):
    return make_user("Reviewer One", "reviewer@example.com", "user")


@pytest.fixture()
def admin(make_user):
    return make_user("Admin", "admin@example.com", "admin")


BOOTCAMP = {
    "name": "Devworks Bootcamp",
    "description": "Devworks is a full stack JavaScript Bootcamp",
    "website": "https://devworks.com",
    "phone": "(111) 111-1111",
    "email": "Enroll@Devworks.com",
    "address": "233 Bay State Rd Boston MA 02215",
    "careers": ["Web Development", "UI/UX", "Business"],
    "housing": True,
}

COURSE = {
    "title": "Front End Web Development",
    "description": "HTML, CSS, JavaScript and React",
    "weeks": "8",
    "tuition_fee": 8000,
    "minimum_skill": "beginner",
}

REVIEW = {
    "title": "Learned a ton!",
    "text": "Great instructors and material",
    "rating": 8,
}


@pytest.fixture()
def create_bootcamp(client):
    def create(headers, **fields):
        resp = client.post("/api/v1/bootcamps", json={**BOOTCAMP, **fields}, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]
    return create


@pytest.fixture()
def create_course(client):
    def create(headers, bootcamp_id, **fields):
        resp = client.post(f"/api/v1/bootcamps/{bootcamp_id}/courses", json={**COURSE, **fields}, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]
    return create
