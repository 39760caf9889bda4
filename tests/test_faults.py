"""
Tests for the structured fault types.
"""

import pytest

from tessera.faults import (
    CastFault,
    ConfigInvalidFault,
    DatabaseConnectionFault,
    Fault,
    FaultDomain,
    ModelNotFoundFault,
    QueryFault,
    Severity,
    UsageFault,
)


class TestFaultCore:
    def test_str_includes_code(self):
        fault = UsageFault("update", "no values given")
        assert str(fault) == "[ORM_USAGE_ERROR] Invalid use of update: no values given"

    def test_to_dict(self):
        data = ModelNotFoundFault("User", 7).to_dict()
        assert data["code"] == "MODEL_NOT_FOUND"
        assert data["domain"] == "model"
        assert data["severity"] == "error"
        assert data["public"] is True
        assert data["metadata"] == {"model": "User", "pk": 7}

    def test_missing_fields_rejected(self):
        with pytest.raises(TypeError):
            Fault()

    def test_domain_equality(self):
        assert FaultDomain.MODEL == FaultDomain("model")
        assert FaultDomain.MODEL == "model"
        assert hash(FaultDomain.USAGE) == hash(FaultDomain("usage"))

    def test_faults_are_exceptions(self):
        with pytest.raises(Fault):
            raise QueryFault("User", "select", "boom")


class TestDomainFaults:
    def test_config_fault_is_fatal(self):
        fault = ConfigInvalidFault("database.url", "bad")
        assert fault.severity is Severity.FATAL
        assert fault.domain == FaultDomain.CONFIG
        assert fault.metadata["key"] == "database.url"

    def test_connection_fault(self):
        fault = DatabaseConnectionFault("sqlite:///x", "nope")
        assert fault.code == "DB_CONNECTION_FAILED"
        assert fault.severity is Severity.FATAL

    def test_query_fault_carries_sql(self):
        fault = QueryFault("<raw>", "query", "syntax", metadata={"sql": "SELEC 1"})
        assert fault.sql == "SELEC 1"
        assert fault.metadata["operation"] == "query"

    def test_cast_fault(self):
        fault = CastFault("age", "int", "abc", reason="invalid literal")
        assert fault.code == "CAST_FAILED"
        assert "age" in fault.message
        assert fault.metadata["value"] == "abc"

    def test_not_found_without_pk(self):
        assert ModelNotFoundFault("User").message == "No 'User' record found"

    def test_usage_fault_domain(self):
        fault = UsageFault("where", "unsupported operator")
        assert fault.domain == FaultDomain.USAGE
        assert fault.retryable is False
