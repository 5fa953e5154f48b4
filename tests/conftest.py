# tests/conftest.py
import pytest

from clinic.database import build_engine, build_session_factory, create_tables
from clinic.storage.kv import JsonFileStore, MemoryStore
from clinic.storage.local import build_local_repositories
from clinic.storage.sql import build_sql_repositories


@pytest.fixture
def sql_engine(tmp_path):
    # A file database: repository calls run on worker threads with their own connections
    engine = build_engine(f"sqlite:///{tmp_path / 'clinic.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()

@pytest.fixture
def sql_session_factory(sql_engine):
    return build_session_factory(sql_engine)

@pytest.fixture
def sql_repos(sql_session_factory):
    return build_sql_repositories(sql_session_factory)

@pytest.fixture
def memory_store():
    return MemoryStore()

@pytest.fixture
def local_repos(memory_store):
    return build_local_repositories(memory_store)

@pytest.fixture
def file_store(tmp_path):
    return JsonFileStore(str(tmp_path / "store"))

@pytest.fixture
def file_repos(file_store):
    return build_local_repositories(file_store)


@pytest.fixture(params=["sql", "local", "file"])
def repos(request):
    """Every contract test runs against each persistence variant."""
    return request.getfixturevalue(f"{request.param}_repos")


@pytest.fixture
def patient_data():
    return {
        "name": "Asha Rao",
        "mobile": "9000000001",
        "age": 34,
        "gender": "Female",
        "address": "12 Station Road",
    }

@pytest.fixture
def appointment_data():
    return {
        "patientName": "Ravi Kumar",
        "mobile": "9000000002",
        "date": "2024-03-01",
        "time": "10:30",
    }

@pytest.fixture
async def patient(repos, patient_data):
    result = await repos.patients.create(patient_data)
    assert result
    return result.value
