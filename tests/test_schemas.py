"""
Tests for payload schemas.
"""

import pytest

from music_collection.application import SCHEMAS, to_snake_case, validate_payload
from music_collection.application.api import list_query
from music_collection.domain.result import ValidationError


class TestValidatePayload:
    """Test validate_payload."""

    def test_keys_become_snake_case(self):
        data = validate_payload("track_create", {
            "title": "X",
            "artist": "A",
            "duration": 1,
            "fileUrl": "https://x/y.mp3",
            "isPublic": True,
        })
        assert data["file_url"] == "https://x/y.mp3"
        assert data["is_public"] is True

    def test_unknown_keys_are_kept_for_the_domain_to_ignore(self):
        data = validate_payload("playlist_update", {"name": "P", "ownerId": "someone"})
        assert data == {"name": "P", "owner_id": "someone"}

    def test_missing_required_field(self):
        with pytest.raises(ValidationError, match="trackId"):
            validate_payload("add_track", {})

    def test_wrong_type_names_the_path(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload("track_create", {
                "title": "X", "artist": "A", "duration": "3:00", "fileUrl": "https://x/y.mp3",
            })
        assert exc_info.value.field == "duration"

    def test_nested_path(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload("profile_update", {"preferences": {"theme": "neon"}})
        assert exc_info.value.field == "preferences.theme"

    @pytest.mark.parametrize("schema,payload", [
        ("login", {"email": "a@example.com", "password": 123}),
        ("password_change", {"currentPassword": "x", "newPassword": ["secret"]}),
        ("refresh", {"refreshToken": ""}),
    ])
    def test_sensitive_values_are_not_echoed(self, schema, payload):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(schema, payload)
        message = str(exc_info.value)
        assert "123" not in message
        assert "secret" not in message
        assert message.endswith("is invalid")

    def test_non_object_payload(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload("login", ["alice@example.com", "hunter2-secret"])
        assert str(exc_info.value) == "payload must be of type object"
        assert exc_info.value.field is None

    @pytest.mark.parametrize("schema,payload,expected", [
        ("profile_update", {"preferences": {"theme": "neon"}}, "preferences.theme must be one of: light, dark"),
        ("track_create", {"title": "X", "artist": "A", "duration": "three minutes", "fileUrl": "u"},
         "duration must be of type number"),
        ("add_track", {"trackId": ""}, "trackId must be at least 1 character(s) long"),
        ("track_batch", {"trackIds": []}, "trackIds must contain at least 1 item(s)"),
    ])
    def test_messages_name_the_rule_not_the_value(self, schema, payload, expected):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(schema, payload)
        assert str(exc_info.value) == expected

    def test_missing_optional_payload(self):
        assert validate_payload("playlist_duplicate", None) == {}

    def test_batch_must_not_be_empty(self):
        with pytest.raises(ValidationError):
            validate_payload("track_batch", {"trackIds": []})

    def test_every_schema_is_a_valid_draft7_schema(self):
        import jsonschema

        for schema in SCHEMAS.values():
            jsonschema.Draft7Validator.check_schema(schema)


class TestNaming:
    """Test case conversion of keys and query parameters."""

    @pytest.mark.parametrize("name,expected", [
        ("fileUrl", "file_url"),
        ("isPublic", "is_public"),
        ("file_url", "file_url"),
        ("title", "title"),
    ])
    def test_to_snake_case(self, name, expected):
        assert to_snake_case(name) == expected

    def test_list_query_accepts_camel_case(self):
        query = list_query({"sortBy": "playCount", "ownerId": "u1", "minTracks": "2"}, default_limit=10)
        assert query.sort_field == "play_count"
        assert query.filters == {"owner_id": "u1", "min_tracks": "2"}
        assert query.limit == 10
