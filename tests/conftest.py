import boto3
import fakeredis
import pytest
from moto import mock_aws

from helpers import RecordingRegistry
from spendwise.db.cache import Cache
from spendwise.db.dynamo import RecordStore
from spendwise.utils.notifications import NotificationDispatcher


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")


@pytest.fixture
def store(aws_credentials):
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name="eu-west-1")
        record_store = RecordStore(resource)
        record_store.create_tables()
        record_store.seed_default_categories()
        yield record_store


@pytest.fixture
def cache():
    return Cache(fakeredis.FakeRedis(decode_responses=True))


@pytest.fixture
def registry():
    return RecordingRegistry()


@pytest.fixture
def dispatcher(cache, registry):
    return NotificationDispatcher(cache, registry)
