"""Tests for secret payload extraction and credential decoding."""
import pytest

from agent_vaultkit.secrets.domains.errors import (
    DecodeError,
    FieldTypeError,
    MissingFieldError,
    PayloadError,
    StructureError,
)
from agent_vaultkit.secrets.domains.extraction import decode_credentials, extract_fields, split_fields
from agent_vaultkit.secrets.domains.models import Credentials


class TestSplitFields:
    def test_splits_on_commas(self):
        assert split_fields("username,password") == ["username", "password"]

    def test_strips_whitespace_and_drops_empty_names(self):
        assert split_fields(" username , ,password,") == ["username", "password"]

    def test_empty_string_gives_no_fields(self):
        assert split_fields("") == []
        assert split_fields(" , ") == []


class TestExtractFields:
    def test_returns_requested_fields(self):
        payload = {"data": {"username": "appuser", "password": "s3cr3t"}}

        result = extract_fields(payload, ["username", "password"])

        assert result == {"username": "appuser", "password": "s3cr3t"}

    def test_ignores_unrequested_fields(self):
        payload = {"data": {"username": "appuser", "password": "s3cr3t", "host": "db.internal"}}

        result = extract_fields(payload, ["host"])

        assert result == {"host": "db.internal"}

    def test_ignores_kv_metadata(self):
        payload = {"data": {"api-key-field": "k-123"}, "metadata": {"version": 3}}

        assert extract_fields(payload, ["api-key-field"]) == {"api-key-field": "k-123"}

    @pytest.mark.parametrize("missing_position", [0, 1, 2])
    def test_missing_field_is_named_regardless_of_position(self, missing_position):
        names = ["username", "password", "host"]
        names[missing_position] = "port"
        payload = {"data": {"username": "appuser", "password": "s3cr3t", "host": "db"}}

        with pytest.raises(MissingFieldError) as exc_info:
            extract_fields(payload, names)

        assert exc_info.value.field == "port"
        assert "'port'" in str(exc_info.value)

    def test_non_string_value_is_a_type_error(self):
        payload = {"data": {"username": "appuser", "port": 5432}}

        with pytest.raises(FieldTypeError) as exc_info:
            extract_fields(payload, ["username", "port"])

        assert exc_info.value.field == "port"
        assert "int" in str(exc_info.value)

    @pytest.mark.parametrize("data", ["a string", ["username"], None, 42])
    def test_non_mapping_data_is_a_structure_error(self, data):
        with pytest.raises(StructureError):
            extract_fields({"data": data}, ["username"])

    def test_missing_data_key_is_a_structure_error(self):
        with pytest.raises(StructureError):
            extract_fields({"metadata": {}}, ["username"])

    def test_non_mapping_payload_is_a_structure_error(self):
        with pytest.raises(StructureError):
            extract_fields(None, ["username"])

    def test_structure_checked_before_fields(self):
        # An empty field list would otherwise fail first
        with pytest.raises(StructureError):
            extract_fields({"data": "oops"}, [])

    def test_empty_field_list_is_rejected(self):
        with pytest.raises(MissingFieldError):
            extract_fields({"data": {"username": "appuser"}}, [])


class TestDecodeCredentials:
    def test_decodes_username_and_password(self):
        payload = {"data": {"username": "appuser", "password": "s3cr3t"}}

        assert decode_credentials(payload) == Credentials(username="appuser", password="s3cr3t")

    def test_extra_fields_are_ignored(self):
        payload = {"lease_id": "x", "data": {"username": "u", "password": "p", "ttl": 60}}

        assert decode_credentials(payload) == Credentials(username="u", password="p")

    @pytest.mark.parametrize("data", [{"username": "appuser"}, {"password": "s3cr3t"}, {}])
    def test_missing_field_is_a_decode_error(self, data):
        with pytest.raises(DecodeError):
            decode_credentials({"data": data})

    def test_wrong_type_is_a_decode_error(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_credentials({"data": {"username": "appuser", "password": 1234}})

        assert exc_info.value.field == "password"

    def test_non_serializable_data_is_a_decode_error(self):
        with pytest.raises(DecodeError):
            decode_credentials({"data": {"username": "appuser", "password": "p", "extra": object()}})

    def test_non_mapping_data_is_a_structure_error(self):
        with pytest.raises(StructureError):
            decode_credentials({"data": ["appuser", "s3cr3t"]})

    def test_payload_errors_share_a_base_class(self):
        with pytest.raises(PayloadError):
            decode_credentials({"data": {}})

    def test_password_is_not_in_repr(self):
        credentials = decode_credentials({"data": {"username": "appuser", "password": "s3cr3t"}})

        assert "s3cr3t" not in repr(credentials)
        assert "appuser" in repr(credentials)
