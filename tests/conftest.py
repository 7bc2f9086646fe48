"""
Campus Guardian — Test Infrastructure (conftest.py)
====================================================
Provides:
  - GUARDIAN_* environment pointing the app at a throwaway database
  - Deterministic seed users (fixed uids, one per role)
  - Stub classifier in place of the hosted model
  - FastAPI TestClient with login helpers
  - DB assertion helpers
  - Fresh, isolated component sets for engine-level tests
"""

import os
import sys
import json
import shutil
import sqlite3
import asyncio

import pytest

# Ensure project root is on path
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT_DIR)

# ============================================================================
# TEST MODE: separate database and upload root, set before main is imported
# ============================================================================
TEST_DB_PATH = os.path.join(ROOT_DIR, "guardian_test.db")
TEST_UPLOAD_DIR = os.path.join(ROOT_DIR, "test_uploads")

if os.path.exists(TEST_DB_PATH):
    os.remove(TEST_DB_PATH)
shutil.rmtree(TEST_UPLOAD_DIR, ignore_errors=True)

os.environ["GUARDIAN_DB_PATH"] = TEST_DB_PATH
os.environ["GUARDIAN_UPLOAD_DIR"] = TEST_UPLOAD_DIR
os.environ["GUARDIAN_PAGE_SIZE"] = "3"
os.environ["GUARDIAN_SESSION_SECRET"] = "guardian-test-secret"

from guardian.errors import ClassificationFailed  # noqa: E402
from guardian.incidents.classifier import IncidentClassifier  # noqa: E402

PASSWORD = "password123"

SEED_USERS = [
    # uid, name, email, role, extra profile fields
    ("admin1", "Asha Admin", "admin@hitam.org", "admin", {}),
    ("guard1", "Ravi Guard", "guard@hitam.org", "guard", {}),
    ("stud1", "A. Kumar", "student@hitam.org", "student", {}),
    ("stud2", "B. Rao", "student2@hitam.org", "student", {}),
    ("fac1", "Dr. Meera Iyer", "faculty@hitam.org", "faculty",
     {"department": "Psychology", "availability": "Mon and Wed, 2pm to 4pm"}),
    ("fac2", "Prof. John Paul", "faculty2@hitam.org", "faculty", {"department": "Mathematics"}),
    ("parent1", "P. Kumar", "parent@hitam.org", "parent", {"childrenUids": ["stud1"]}),
    ("parent2", "Q. Devi", "parent2@hitam.org", "parent", {}),
    ("visitor1", "Vera Visitor", "visitor@hitam.org", "visitor", {}),
]


# ============================================================================
# Stub classifier
# ============================================================================

class StubClassifier(IncidentClassifier):
    """Keyword classifier with a failure switch and a call log."""

    name = "stub"

    def __init__(self):
        self.calls = []
        self.fail = False
        self.label = None

    def reset(self):
        self.calls.clear()
        self.fail = False
        self.label = None

    async def classify(self, transcript: str) -> str:
        self.calls.append(transcript)
        if self.fail:
            raise ClassificationFailed("Could not classify the incident. Please try again.")
        if self.label is not None:
            return self.label
        text = transcript.lower()
        if any(w in text for w in ("scream", "shout", "insult", "yell")):
            return "Verbal Abuse"
        if any(w in text for w in ("block", "threat", "follow")):
            return "Intimidation"
        if any(w in text for w in ("joke", "remark", "comment")):
            return "Micro-aggressions"
        return "Other"


# ============================================================================
# Seeding
# ============================================================================

def seed_users(db_path, store):
    """Insert sign-in identities and profiles with fixed uids."""
    from guardian.store import SYSTEM_ACTOR
    from guardian.users.auth import hash_password, init_auth_schema

    init_auth_schema(db_path)
    conn = sqlite3.connect(db_path, timeout=30)
    for uid, name, email, role, extra in SEED_USERS:
        salt = os.urandom(16)
        conn.execute(
            "INSERT OR REPLACE INTO auth_identities (uid, email, password_hash, salt, created) "
            "VALUES (?, ?, ?, ?, datetime('now'))",
            (uid, email, hash_password(PASSWORD, salt), salt.hex()),
        )
    conn.commit()
    conn.close()

    for uid, name, email, role, extra in SEED_USERS:
        profile = {"uid": uid, "name": name, "email": email, "role": role,
                   "mobileNumber": "9876543210", **extra}
        store.set("users", uid, profile, SYSTEM_ACTOR)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Session-wide test environment setup."""
    yield
    # Cleanup (ignore Windows file lock errors)
    try:
        if os.path.exists(TEST_DB_PATH):
            os.remove(TEST_DB_PATH)
    except (PermissionError, OSError):
        pass
    shutil.rmtree(TEST_UPLOAD_DIR, ignore_errors=True)


@pytest.fixture(scope="session")
def stub_classifier():
    return StubClassifier()


@pytest.fixture(scope="session")
def app(stub_classifier):
    """The FastAPI app wired to the test database and the stub classifier."""
    import main
    main.incident_manager.classifier = stub_classifier
    return main.app


@pytest.fixture(scope="session")
def client(app):
    """FastAPI TestClient (session-scoped for speed)."""
    from starlette.testclient import TestClient
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture(scope="session")
def seeded_db(app, client):
    """Seed the test database with deterministic users."""
    import main
    seed_users(TEST_DB_PATH, main.store)
    return TEST_DB_PATH


@pytest.fixture(autouse=True)
def _reset_classifier(stub_classifier):
    stub_classifier.reset()
    yield


# ============================================================================
# Session helpers
# ============================================================================

def login_as(client, uid):
    """Log the shared client in as one of the seed users (cookies are stored)."""
    email = next(u[2] for u in SEED_USERS if u[0] == uid)
    resp = client.post("/api/session/login", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return client


def file_incident(client, transcript, reporter="guard1", target=None, **location):
    """Submit an incident as `reporter` and return the stored document."""
    login_as(client, reporter)
    body = {"transcript": transcript}
    if target:
        body["targetStudentId"] = target
    body.update(location)
    resp = client.post("/api/incidents", json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()["incident"]


@pytest.fixture
def admin_session(client, seeded_db):
    return login_as(client, "admin1")


@pytest.fixture
def guard_session(client, seeded_db):
    return login_as(client, "guard1")


@pytest.fixture
def student_session(client, seeded_db):
    return login_as(client, "stud1")


@pytest.fixture
def faculty_session(client, seeded_db):
    return login_as(client, "fac1")


@pytest.fixture
def parent_session(client, seeded_db):
    return login_as(client, "parent1")


# ============================================================================
# DB helpers
# ============================================================================

def get_test_db():
    """Direct connection to test database for assertions."""
    conn = sqlite3.connect(TEST_DB_PATH, timeout=30)
    conn.row_factory = sqlite3.Row
    return conn


def db_query(sql, params=()):
    """Run a query against the test DB and return list of dicts."""
    conn = get_test_db()
    rows = conn.execute(sql, params).fetchall()
    result = [dict(r) for r in rows]
    conn.close()
    return result


def db_count(table, where="1=1", params=()):
    """Count rows in a table."""
    conn = get_test_db()
    row = conn.execute(f"SELECT COUNT(*) AS cnt FROM {table} WHERE {where}", params).fetchone()
    conn.close()
    return row["cnt"]


def db_docs(collection, **equals):
    """Documents of one collection whose top-level fields equal `equals`."""
    docs = []
    for row in db_query("SELECT doc_id, data FROM documents WHERE collection = ?", (collection,)):
        doc = json.loads(row["data"])
        doc["id"] = row["doc_id"]
        if all(doc.get(k) == v for k, v in equals.items()):
            docs.append(doc)
    return docs


# ============================================================================
# Isolated components for engine-level tests
# ============================================================================

class Components:
    """One fresh store + collaborators on a private database."""

    def __init__(self, tmp_path):
        from guardian.appointments import AppointmentManager
        from guardian.errorbus import ErrorBus
        from guardian.eventstream import ActivityStream
        from guardian.incidents import BlobStorage, IncidentManager
        from guardian.safety import SafetyDesk
        from guardian.store import DocumentStore
        from guardian.users import AuthProvider, UserDirectory

        self.db_path = str(tmp_path / "components.db")
        self.store = DocumentStore(self.db_path)
        self.auth = AuthProvider(self.db_path)
        self.activity = ActivityStream(self.db_path)
        self.bus = ErrorBus(recent_limit=20)
        self.classifier = StubClassifier()
        self.blobs = BlobStorage(str(tmp_path / "uploads"))
        self.users = UserDirectory(self.store, self.auth, "hitam.org", "qwerty!@12", activity=self.activity)
        self.incidents = IncidentManager(
            self.store, self.classifier, self.blobs, self.users, self.bus, self.activity, page_size=3,
        )
        self.appointments = AppointmentManager(self.store, self.users, self.activity)
        self.safety = SafetyDesk(self.store, self.bus, self.activity)
        seed_users(self.db_path, self.store)

    def submit(self, transcript, reporter="guard1", target=None, **kwargs):
        from guardian.incidents import NewIncident
        from guardian.store import Actor

        profile = self.users.get_profile(reporter)
        new = NewIncident(
            transcript=transcript,
            reporter_id=profile.uid,
            reporter_name=profile.name,
            target_student_id=target,
            **kwargs,
        )
        return run(self.incidents.submit(new, Actor(uid=profile.uid, role=profile.role)))


def actor_for(uid, components):
    from guardian.store import Actor
    profile = components.users.get_profile(uid)
    return Actor(uid=profile.uid, role=profile.role)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def fresh(tmp_path):
    """Isolated component set; nothing shared with the app under TestClient."""
    return Components(tmp_path)
