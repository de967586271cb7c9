"""
Test: Registration and profile lookup.
"""
import pytest

from portfolio_backend.errors import BadRequest, Conflict, NotFound, UpstreamError
from portfolio_backend.services import user_service


class TestShortCode:
    def test_student_prefix(self):
        assert user_service.generate_short_code('student', 1_700_000_123_456) == "A123456"

    def test_teacher_prefix(self):
        assert user_service.generate_short_code('teacher', 1_700_000_654_321) == "T654321"


class TestRegister:
    def test_register_student(self, db):
        user = user_service.register_user("Ana Torres", " Ana@School.test ", "secret123", "student")
        assert user["email"] == "ana@school.test"
        assert user["role"] == "student"
        assert user["student_id"].startswith("A")
        assert user["teacher_id"] is None
        assert user["id"] in db.auth.admin.users

    def test_register_teacher_gets_teacher_code(self, db):
        user = user_service.register_user("Laura Méndez", "laura@school.test", "secret123", "teacher")
        assert user["teacher_id"].startswith("T")
        assert user["student_id"] is None

    def test_missing_fields(self, db):
        with pytest.raises(BadRequest):
            user_service.register_user("Ana", "", "secret123", "student")

    def test_unknown_role(self, db):
        with pytest.raises(BadRequest):
            user_service.register_user("Ana", "ana@school.test", "secret123", "admin")

    def test_duplicate_email(self, seeded):
        with pytest.raises(Conflict):
            user_service.register_user("Carlos", "a000123@school.test", "secret123", "student")

    def test_auth_failure(self, db):
        db.auth.admin.fail_create = True
        with pytest.raises(UpstreamError):
            user_service.register_user("Ana", "ana@school.test", "secret123", "student")
        assert db.rows('profiles') == []

    def test_profile_failure_rolls_back_auth_user(self, db):
        db.fail('profiles', 'insert')
        with pytest.raises(UpstreamError):
            user_service.register_user("Ana", "ana@school.test", "secret123", "student")
        assert db.auth.admin.users == {}


class TestLookup:
    def test_get_user_by_code_or_id(self, seeded):
        by_code = user_service.get_user("T000456")
        by_id = user_service.get_user(seeded.teacher_id)
        assert by_code == by_id
        assert by_code["name"] == "Laura Méndez"

    def test_get_unknown_user(self, seeded):
        with pytest.raises(NotFound):
            user_service.get_user("ZZZ999")

    def test_get_role(self, seeded):
        assert user_service.get_role(seeded.student_id) == "student"
        assert user_service.get_role("00000000-0000-0000-0000-000000000000") is None

    def test_list_students_by_name(self, seeded):
        names = [s["name"] for s in user_service.list_students()]
        assert names == ["Ana Torres", "Carlos Ruiz"]


class TestShortCodeAllocation:
    def test_free_code_is_used_as_is(self, db):
        assert user_service.allocate_short_code('student', db, now_ms=1_700_000_123_456) == "A123456"

    def test_taken_code_is_bumped(self, seeded, db):
        # 1_699_999_000_123 ends in 000123, already held by the seeded student
        assert user_service.allocate_short_code('student', db, now_ms=1_699_999_000_123) == "A000124"

    def test_teacher_codes_checked_separately(self, seeded, db):
        assert user_service.allocate_short_code('teacher', db, now_ms=1_699_999_000_123) == "T000123"


class TestConcurrentRegistration:
    def test_duplicate_email_at_insert_is_conflict(self, db, monkeypatch):
        admin = db.auth.admin
        create_user = admin.create_user

        def create_and_race(attributes):
            # another registration for the same email lands after the pre-check
            db.table('profiles').insert({
                "name": "Other", "email": attributes["email"], "role": "student",
                "student_id": "A999999", "teacher_id": None,
            }).execute()
            return create_user(attributes)

        monkeypatch.setattr(admin, "create_user", create_and_race)
        with pytest.raises(Conflict):
            user_service.register_user("Ana", "ana@school.test", "secret123", "student")
        assert admin.users == {}

    def test_role_is_stored_in_app_metadata(self, db):
        user = user_service.register_user("Ana", "ana@school.test", "secret123", "student")
        created = db.auth.admin.users[user["id"]]
        assert created.app_metadata == {"role": "student"}
        assert "role" not in created.user_metadata
