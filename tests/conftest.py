"""
Pytest configuration and fixtures for FileIt Backend tests.
"""

import json
import os
import shutil
import tempfile

import boto3
import pymupdf
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from moto import mock_aws

TEST_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
TEST_KEY_PEM = TEST_KEY.private_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PrivateFormat.PKCS8,
    encryption_algorithm=serialization.NoEncryption(),
).decode("ascii")

_DATA_DIR = tempfile.mkdtemp(prefix="fileit_test_")

# Set test environment variables before importing the app
os.environ["FILEIT_BUCKET_NAME"] = "test-bucket"
os.environ["FILEIT_ACCOUNT_ID"] = "fileit@test-project.iam.gserviceaccount.com"
os.environ["FILEIT_PRIVATE_KEY"] = TEST_KEY_PEM
os.environ["FILEIT_HMAC_ACCESS_ID"] = "GOOGTESTACCESS"
os.environ["FILEIT_HMAC_SECRET"] = "test-secret"
os.environ["FILEIT_CREDENTIALS_DB"] = os.path.join(_DATA_DIR, "fileit.db")
os.environ["FILEIT_MASTER_JSON"] = os.path.join(_DATA_DIR, "master.json")
os.environ["FILEIT_STATIC_PATH"] = os.path.join(_DATA_DIR, "static")
os.environ["FILEIT_ADMIN_USERNAME"] = "admin"
os.environ["FILEIT_ADMIN_PASSWORD"] = "admin-password"

from fileit_backend.cloud_storage import CloudStorage  # noqa: E402
from fileit_backend.configuration import get_settings  # noqa: E402
from fileit_backend.content_processor import ContentProcessor  # noqa: E402
from fileit_backend.main import app, get_storage, login_limiter  # noqa: E402

TEST_BUCKET = "test-bucket"


def put_object(s3_client, key, body, content_type="application/octet-stream"):
    s3_client.put_object(Bucket=TEST_BUCKET, Key=key, Body=body, ContentType=content_type)


def read_object(s3_client, key):
    """Return ``(body, content_type)`` of an object in the test bucket."""
    response = s3_client.get_object(Bucket=TEST_BUCKET, Key=key)
    return response["Body"].read(), response["ContentType"]


def object_keys(s3_client, prefix=""):
    response = s3_client.list_objects_v2(Bucket=TEST_BUCKET, Prefix=prefix)
    return [item["Key"] for item in response.get("Contents", [])]


@pytest.fixture(scope="session", autouse=True)
def test_dirs():
    """Cleanup the temporary data directory after all tests."""
    yield _DATA_DIR
    shutil.rmtree(_DATA_DIR, ignore_errors=True)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def s3_client():
    """A real boto3 S3 client backed by moto, with the test bucket created."""
    with mock_aws():
        s3 = boto3.client(
            "s3",
            region_name="us-east-1",
            aws_access_key_id="testing",
            aws_secret_access_key="testing",
        )
        s3.create_bucket(Bucket=TEST_BUCKET)
        yield s3


@pytest.fixture
def storage(settings, s3_client):
    return CloudStorage(settings, client=s3_client)


@pytest.fixture
def client(storage):
    """Create a test client for the FastAPI app backed by moto storage."""
    app.dependency_overrides[get_storage] = lambda: storage
    ContentProcessor.reset_instance()
    login_limiter.requests.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
    ContentProcessor.reset_instance()


@pytest.fixture
def auth_headers(client):
    """Log in as the bootstrapped admin and return the session header."""
    response = client.post("/login", json={"username": "admin", "password": "admin-password"})
    assert response.status_code == 200
    return {"X-Auth-Token": response.json()["token"]}


@pytest.fixture
def master_json_path(settings):
    path = settings.master_json_path
    yield path
    if os.path.exists(path):
        os.unlink(path)


@pytest.fixture
def book_list(s3_client, settings):
    """Seed the bucket with a BookList index and one book XML."""
    index = {"BookList": [{"Physics": {"Path": "Physics/Physics.xml"}}, {"Chemistry": {"Path": "Chemistry/Chemistry.xml"}}]}
    put_object(s3_client, settings.book_index, json.dumps(index).encode(), "application/json")
    put_object(s3_client, "Physics/Physics.xml", SAMPLE_XML.encode(), "application/xml")
    return index


SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Book name="Physics" edition="2">
  <Chapter id="1">Motion</Chapter>
  <Chapter id="2">Energy</Chapter>
  <Pages>120</Pages>
  <Published>true</Published>
</Book>"""


@pytest.fixture
def sample_xml():
    return SAMPLE_XML


def make_pdf(pages: int = 2) -> bytes:
    document = pymupdf.open()
    for number in range(1, pages + 1):
        page = document.new_page()
        page.insert_text((72, 72), f"Page {number}")
    data = document.tobytes()
    document.close()
    return data


@pytest.fixture
def sample_pdf():
    """A small two-page PDF."""
    return make_pdf(2)
