import pytest

from pgseed.errors import SeedError
from pgseed.models import DatabaseInstanceSpec
from pgseed.services.validation import ValidationService


class DummyLogger:
    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeRequestsModule:
    class RequestException(Exception):
        pass

    def __init__(self, failing_methods=()):
        self.failing_methods = set(failing_methods)
        self.calls = []

    def request(self, method, *_args, **_kwargs):
        self.calls.append(method)
        if method in self.failing_methods:
            raise self.RequestException(f"{method} refused")
        return FakeResponse()


class FakeResponse:
    def raise_for_status(self):
        return None

    def close(self):
        return None


def test_validate_specs_accepts_distinct_roles():
    service = ValidationService()

    service.validate_specs(
        [
            DatabaseInstanceSpec(role="primary", backup="first-db.backup"),
            DatabaseInstanceSpec(role="secondary", backup="https://example.com/second.dump"),
            DatabaseInstanceSpec(role="reporting", backup="seed.sql"),
        ]
    )


def test_validate_specs_requires_at_least_one_spec():
    with pytest.raises(SeedError, match="At least one"):
        ValidationService().validate_specs([])


def test_validate_specs_rejects_duplicate_roles():
    specs = [
        DatabaseInstanceSpec(role="primary", backup="first-db.backup"),
        DatabaseInstanceSpec(role="primary", backup="second-db.backup"),
    ]

    with pytest.raises(SeedError, match="Duplicate database instance role: primary"):
        ValidationService().validate_specs(specs)


def test_validate_specs_rejects_blank_role():
    with pytest.raises(SeedError, match="non-empty"):
        ValidationService().validate_specs([DatabaseInstanceSpec(role="  ", backup="a.backup")])


def test_validate_specs_rejects_empty_credentials():
    spec = DatabaseInstanceSpec(role="primary", backup="first-db.backup", password="")

    with pytest.raises(SeedError, match="empty password"):
        ValidationService().validate_specs([spec])


def test_validate_specs_rejects_unknown_backup_format():
    spec = DatabaseInstanceSpec(role="primary", backup="first-db.zip")

    with pytest.raises(SeedError, match="Unsupported backup artifact"):
        ValidationService().validate_specs([spec])


def test_validate_specs_rejects_foreign_objects():
    with pytest.raises(SeedError, match="Expected DatabaseInstanceSpec"):
        ValidationService().validate_specs([{"role": "primary", "backup": "a.backup"}])


def test_extension_of_url_ignores_query_string():
    service = ValidationService()

    assert service.get_location_extension("https://example.com/dumps/a.DUMP?sig=1") == ".dump"


def test_insecure_http_blocked_before_network():
    fake_requests = FakeRequestsModule()
    service = ValidationService(allow_insecure_http=False, requests_module=fake_requests)

    with pytest.raises(SeedError, match="insecure HTTP"):
        service.probe_url(
            "http://example.com/first-db.backup",
            "backup URL",
            DummyLogger(),
            DummyConsole(),
        )

    assert fake_requests.calls == []


def test_insecure_http_allowed_when_opted_in():
    fake_requests = FakeRequestsModule()
    service = ValidationService(allow_insecure_http=True, requests_module=fake_requests)

    service.probe_url("http://example.com/first-db.backup", "backup URL", DummyLogger(), DummyConsole())

    assert fake_requests.calls == ["HEAD"]


def test_probe_url_falls_back_to_get():
    fake_requests = FakeRequestsModule(failing_methods={"HEAD"})
    service = ValidationService(requests_module=fake_requests)

    service.probe_url("https://example.com/first-db.backup", "backup URL", DummyLogger(), DummyConsole())

    assert fake_requests.calls == ["HEAD", "GET"]


def test_probe_url_reports_last_error():
    fake_requests = FakeRequestsModule(failing_methods={"HEAD", "GET"})
    service = ValidationService(requests_module=fake_requests)

    with pytest.raises(SeedError, match="not accessible: GET refused"):
        service.probe_url(
            "https://example.com/first-db.backup", "backup URL", DummyLogger(), DummyConsole()
        )
