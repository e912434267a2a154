from datetime import datetime, timedelta

from medspace.core.config import Settings
from medspace.core.security import (
    create_access_token, generate_otp, get_password_hash, otp_is_valid,
    verify_password, verify_token
)
from medspace.models.appointment import is_valid_appointment_id, new_appointment_id

settings = Settings(SECRET_KEY="unit-test-secret")

class TestPasswords:

    def test_hash_round_trip(self):
        hashed = get_password_hash("TestPassword123")
        assert hashed != "TestPassword123"
        assert verify_password("TestPassword123", hashed)
        assert not verify_password("testpassword123", hashed)

class TestTokens:

    def test_round_trip(self):
        token = create_access_token(7, settings)
        payload = verify_token(token, settings)
        assert payload.sub == "7"

    def test_wrong_secret(self):
        token = create_access_token(7, settings)
        other = Settings(SECRET_KEY="another-secret")
        assert verify_token(token, other) is None

    def test_expired(self):
        token = create_access_token(7, settings, expires_delta=timedelta(seconds=-1))
        assert verify_token(token, settings) is None

    def test_garbage(self):
        assert verify_token("not.a.token", settings) is None

class TestOTP:

    def test_format(self):
        otp = generate_otp()
        assert len(otp) == 6 and otp.isdigit()

    def test_matching_code_before_expiry(self):
        expires = datetime.utcnow() + timedelta(minutes=10)
        assert otp_is_valid("123456", "123456", expires)

    def test_mismatch(self):
        expires = datetime.utcnow() + timedelta(minutes=10)
        assert not otp_is_valid("654321", "123456", expires)

    def test_after_expiry(self):
        expires = datetime.utcnow() - timedelta(seconds=1)
        assert not otp_is_valid("123456", "123456", expires)

    def test_nothing_stored(self):
        assert not otp_is_valid("123456", None, None)

    def test_non_ascii_input(self):
        expires = datetime.utcnow() + timedelta(minutes=10)
        assert not otp_is_valid("12345é", "123456", expires)

class TestAppointmentIds:

    def test_generated_ids_are_valid(self):
        assert is_valid_appointment_id(new_appointment_id())

    def test_malformed(self):
        for value in ("", "123", "not-an-id", "G" * 32, "a" * 33):
            assert not is_valid_appointment_id(value)
