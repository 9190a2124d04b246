import pytest

from bookshare.utils.validators import FormValidator, TextValidator, ValidationError


def test_text_validator():
    assert TextValidator.is_valid_email("sam@example.com")
    assert not TextValidator.is_valid_email("sam@example")
    assert not TextValidator.is_valid_email("")
    assert TextValidator.is_valid_name("Al")
    assert not TextValidator.is_valid_name(" A ")
    assert TextValidator.is_valid_mobile("(555) 123-4567")
    assert not TextValidator.is_valid_mobile("555-1234")
    assert TextValidator.is_valid_url("https://covers.example.com/dune.jpg")
    assert not TextValidator.is_valid_url("ftp://covers.example.com/dune.jpg")


def test_registration_payload_is_camel_case_and_stripped():
    payload = FormValidator.registration(" Sam ", " sam@example.com ", "secret", "secret", "seeker",
                                         mobile_number="555 123 4567")
    assert payload == {
        "name": "Sam",
        "email": "sam@example.com",
        "password": "secret",
        "role": "seeker",
        "mobileNumber": "555 123 4567",
        "address": "",
    }


def test_registration_rejects_short_password():
    with pytest.raises(ValidationError) as exc:
        FormValidator.registration("Sam", "sam@example.com", "abc", "abc", "seeker")
    assert exc.value.errors == {"password": "Password must be at least 6 characters"}


def test_registration_rejects_mismatched_passwords():
    with pytest.raises(ValidationError) as exc:
        FormValidator.registration("Sam", "sam@example.com", "secret", "secreT", "seeker")
    assert exc.value.errors["confirmPassword"] == "Passwords do not match"
    assert str(exc.value) == "Passwords do not match"


def test_registration_collects_every_bad_field():
    with pytest.raises(ValidationError) as exc:
        FormValidator.registration("S", "nope", "secret", "secret", "admin", mobile_number="123")
    assert set(exc.value.errors) == {"name", "email", "role", "mobileNumber"}


def test_login_requires_both_fields():
    with pytest.raises(ValidationError) as exc:
        FormValidator.login("  ", "")
    assert set(exc.value.errors) == {"email", "password"}
    assert FormValidator.login(" sam@example.com", "pw") == {"email": "sam@example.com", "password": "pw"}


def test_book_defaults_status_and_omits_empty_image():
    payload = FormValidator.book("Dune", "Frank Herbert", "Portland", "555-123-4567", genre=" SF ")
    assert payload == {
        "title": "Dune",
        "author": "Frank Herbert",
        "genre": "SF",
        "location": "Portland",
        "contactInfo": "555-123-4567",
        "status": "available",
    }


def test_book_rejects_missing_fields_and_bad_values():
    with pytest.raises(ValidationError) as exc:
        FormValidator.book("", "", "", "", status="lost", image_url="not-a-url")
    assert set(exc.value.errors) == {"title", "author", "location", "contactInfo", "status", "imageUrl"}


def test_profile_only_includes_given_fields():
    assert FormValidator.profile(name="Samantha") == {"name": "Samantha"}
    assert FormValidator.profile() == {}
    payload = FormValidator.profile(password="newpass", confirm_password="newpass", address=" 1 Main St ")
    assert payload == {"address": "1 Main St", "password": "newpass"}


def test_profile_password_must_match():
    with pytest.raises(ValidationError) as exc:
        FormValidator.profile(password="newpass", confirm_password="other")
    assert exc.value.errors == {"confirmPassword": "Passwords do not match"}
