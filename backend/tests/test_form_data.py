"""
Tests for submission field handling: the FormFields multi-map, control-field
validation and _headers parsing.
"""

import json

import pytest

from app.models.submission import HeaderDeclaration
from app.services.form_data import (
    DEFAULT_SUBJECT,
    ConfigurationError,
    FormFields,
    Submission,
    parse_headers,
)


def _fields(**data) -> FormFields:
    return FormFields.from_mapping(data)


class TestFormFields:

    def test_repeated_keys_accumulate_values(self):
        fields = FormFields([("Color", "red"), ("Name", "Ana"), ("Color", "blue")])
        assert fields.values("Color") == ["red", "blue"]
        assert fields.names() == ["Color", "Name"]

    def test_from_mapping_accepts_lists_and_scalars(self):
        fields = FormFields.from_mapping({"a": "1", "b": ["2", "3"], "c": None, "d": 4})
        assert fields.values("a") == ["1"]
        assert fields.values("b") == ["2", "3"]
        assert fields.values("c") == [""]
        assert fields.values("d") == ["4"]

    def test_missing_field_accessors(self):
        fields = FormFields()
        assert fields.values("nope") == []
        assert fields.first("nope") == ""
        assert "nope" not in fields

    def test_form_data_names_exclude_reserved_keys(self):
        fields = _fields(_domain="acme", _id="contact", _subject="Hi", Name="Ana", CC="ops@acme.com")
        assert fields.form_data_names() == ["Name", "CC"]

    def test_applicant_emails_collects_all_variants_in_order(self):
        fields = FormFields([
            ("mail", "c@x.com"),
            ("Email", "a@x.com"),
            ("email", ""),
            ("Email", "b@x.com"),
        ])
        assert fields.applicant_emails() == ["a@x.com", "b@x.com", "c@x.com"]

    def test_recipients_drop_blank_values(self):
        fields = FormFields([("CC", "ops@acme.com"), ("CC", ""), ("CC", "boss@acme.com")])
        assert fields.recipients() == ["ops@acme.com", "boss@acme.com"]


class TestSubmissionFromFields:

    def test_default_table_name_is_domain_hash_form_id(self):
        submission = Submission.from_fields(_fields(_domain="acme", _id="contact"))
        assert submission.context.table_name == "acme#contact"
        assert submission.context.subject == DEFAULT_SUBJECT

    def test_explicit_table_name_override(self):
        submission = Submission.from_fields(
            _fields(_domain="acme", _id="contact", _sheetname="Leads", _subject="New lead")
        )
        assert submission.context.table_name == "Leads"
        assert submission.context.subject == "New lead"

    @pytest.mark.parametrize("data", [
        {"_id": "contact"},
        {"_domain": "acme"},
        {"_domain": "  ", "_id": "contact"},
        {},
    ])
    def test_missing_domain_or_form_id_is_configuration_error(self, data):
        with pytest.raises(ConfigurationError) as exc_info:
            Submission.from_fields(FormFields.from_mapping(data))
        assert exc_info.value.error_code == "missing_route"
        assert "Missing domain or form ID" in str(exc_info.value)

    def test_declared_headers_default_to_form_field_names(self):
        submission = Submission.from_fields(
            _fields(_domain="acme", _id="contact", Name="Ana", Email="ana@x.com")
        )
        assert [h.name for h in submission.declared_headers()] == ["Name", "Email"]
        assert all(h.type is None for h in submission.declared_headers())

    def test_declared_headers_from_headers_field(self):
        headers = [{"name": "Name"}, {"name": "CV", "type": "file"}]
        submission = Submission.from_fields(
            _fields(_domain="acme", _id="jobs", _headers=json.dumps(headers), Name="Ana")
        )
        assert submission.declared_headers() == [
            HeaderDeclaration(name="Name"),
            HeaderDeclaration(name="CV", type="file"),
        ]


class TestParseHeaders:

    def test_empty_means_no_declaration(self):
        assert parse_headers("") == []
        assert parse_headers("[]") == []

    def test_unknown_keys_are_ignored(self):
        result = parse_headers('[{"name": "Phone", "type": "tel", "label": "Your phone"}]')
        assert result == [HeaderDeclaration(name="Phone", type="tel")]

    def test_invalid_json_is_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_headers("[{name: Phone}")
        assert exc_info.value.error_code == "invalid_headers"

    def test_non_array_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_headers('{"name": "Phone"}')

    def test_entry_without_name_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_headers('[{"type": "file"}]')
