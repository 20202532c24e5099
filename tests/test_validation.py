"""Unit tests for validation.py - Resource declaration validation."""

from validation import SCHEMAS, validate_declaration


class TestValidateDeclaration:
    """Tests for validate_declaration function."""

    def test_valid_app(self):
        """Test validation of a minimal app declaration."""
        is_valid, error = validate_declaration("app", {"name": "web"})
        assert is_valid is True
        assert error is None

    def test_valid_app_with_regions(self):
        """Test validation of an app with every attribute set."""
        spec = {
            "name": "web",
            "org": "org-123",
            "network": "private",
            "preferred_region": "ord",
            "regions": ["ord", "ams"],
        }
        is_valid, error = validate_declaration("app", spec)
        assert is_valid is True
        assert error is None

    def test_app_missing_name(self):
        """Test that the app name is required."""
        is_valid, error = validate_declaration("app", {"org": "org-123"})
        assert is_valid is False
        assert "'name' is a required property" in error

    def test_app_unknown_attribute(self):
        """Test that undeclared attributes are rejected."""
        is_valid, error = validate_declaration("app", {"name": "web", "size": 3})
        assert is_valid is False
        assert "Additional properties are not allowed" in error

    def test_valid_machine(self):
        """Test validation of a machine declaration."""
        spec = {
            "name": "web-1",
            "region": "ord",
            "app": "web",
            "image": "nginx:latest",
            "cpus": 2,
            "memory_mb": 512,
            "cpu_kind": "shared",
        }
        is_valid, error = validate_declaration("machine", spec)
        assert is_valid is True
        assert error is None

    def test_machine_invalid_sizing(self):
        """Test that sizing must be positive integers."""
        spec = {
            "name": "web-1",
            "region": "ord",
            "app": "web",
            "image": "nginx:latest",
            "cpus": 0,
            "memory_mb": "lots",
        }
        is_valid, error = validate_declaration("machine", spec)
        assert is_valid is False
        assert error.startswith("cpus: ")
        assert "memory_mb: " in error

    def test_machine_missing_required(self):
        """Test that region, app and image are required."""
        is_valid, error = validate_declaration("machine", {"name": "web-1"})
        assert is_valid is False
        assert "'region' is a required property" in error
        assert "'image' is a required property" in error

    def test_valid_ip_address(self):
        """Test validation of an IP address declaration."""
        is_valid, error = validate_declaration(
            "ip_address", {"app": "web", "type": "v6"}
        )
        assert is_valid is True
        assert error is None

    def test_ip_address_invalid_type(self):
        """Test that the address type must be v4 or v6."""
        is_valid, error = validate_declaration(
            "ip_address", {"app": "web", "type": "v5"}
        )
        assert is_valid is False
        assert error.startswith("type: ")

    def test_unknown_kind(self):
        """Test that unknown kinds are rejected."""
        is_valid, error = validate_declaration("volume", {"name": "data"})
        assert is_valid is False
        assert error == "Unknown resource kind: volume"

    def test_every_kind_has_a_schema(self):
        """Test the schema table covers the built-in kinds."""
        assert set(SCHEMAS) == {"app", "machine", "ip_address"}
