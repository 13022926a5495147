import unittest
from datetime import timedelta
from unittest import mock

from sqlalchemy.exc import SQLAlchemyError

from tests.base import AppTestCase
from welfare.errors import AccessDeniedError, NotFoundError, ValidationError
from welfare.extensions import db
from welfare.models import Permission, RbacRole, UserRoleAssignment, utcnow_naive
from welfare.services.rbac import assign_role, get_user_permissions, has_permission, seed_system_roles


class SeedTests(AppTestCase):
    def test_seed_is_idempotent(self):
        first = seed_system_roles()
        second = seed_system_roles()

        self.assertGreater(first["permissions"], 0)
        self.assertGreater(first["roles"], 0)
        self.assertEqual(second, {"permissions": 0, "roles": 0})
        self.assertIsNone(RbacRole.query.filter_by(name="super_admin").first())
        self.assertTrue(Permission.query.filter_by(name="reports.create").first())


class HasPermissionTests(AppTestCase):
    def setUp(self):
        super().setUp()
        seed_system_roles()

    def test_assigned_role_grants_its_permissions(self):
        user = self.make_user("unit_admin")
        assign_role(user.id, "unit_admin")

        self.assertTrue(has_permission(user.id, "payments.process"))
        self.assertFalse(has_permission(user.id, "recurring_payments.create"))

    def test_no_assignment_no_permission(self):
        user = self.make_user("district_admin")
        self.assertFalse(has_permission(user.id, "applications.read"))
        self.assertEqual(get_user_permissions(user.id), set())

    def test_global_roles_hold_everything(self):
        user = self.make_user("state_admin")
        self.assertTrue(has_permission(user.id, "regions.manage"))
        self.assertTrue(has_permission(user.id, "anything.at_all"))

    def test_unknown_or_inactive_user(self):
        self.assertFalse(has_permission(4242, "applications.read"))
        user = self.make_user("super_admin", is_active=False)
        self.assertFalse(has_permission(user.id, "applications.read"))

    def test_blank_permission_name(self):
        user = self.make_user("super_admin")
        self.assertFalse(has_permission(user.id, ""))

    def test_expired_assignment_ignored(self):
        user = self.make_user("unit_admin")
        assign_role(user.id, "unit_admin", valid_until=utcnow_naive() + timedelta(days=1))

        self.assertTrue(has_permission(user.id, "payments.read"))
        later = {"now": utcnow_naive() + timedelta(days=2)}
        self.assertFalse(has_permission(user.id, "payments.read", later))

    def test_deactivated_role_ignored(self):
        user = self.make_user("unit_admin")
        assign_role(user.id, "unit_admin")
        role = RbacRole.query.filter_by(name="unit_admin").first()
        role.is_active = False
        db.session.commit()

        self.assertFalse(has_permission(user.id, "payments.read"))

    def test_permissions_union_across_roles(self):
        user = self.make_user("unit_admin")
        assign_role(user.id, "unit_admin")
        assign_role(user.id, "district_admin")

        perms = get_user_permissions(user.id)
        self.assertIn("payments.process", perms)
        self.assertIn("regions.manage", perms)

    def test_store_failure_denies(self):
        user = self.make_user("unit_admin")
        assign_role(user.id, "unit_admin")
        with mock.patch("welfare.services.rbac.get_user_permissions", side_effect=SQLAlchemyError("down")):
            self.assertFalse(has_permission(user.id, "payments.read"))


class AssignRoleTests(AppTestCase):
    def setUp(self):
        super().setUp()
        seed_system_roles()

    def test_unknown_user_or_role(self):
        with self.assertRaises(NotFoundError):
            assign_role(999, "unit_admin")
        user = self.make_user("unit_admin")
        with self.assertRaises(ValidationError):
            assign_role(user.id, "auditor")

    def test_assignment_is_top_down(self):
        district = self.make_user("district_admin")
        unit = self.make_user("unit_admin")
        target = self.make_user("beneficiary")

        assign_role(target.id, "area_admin", assigned_by_id=district.id)
        with self.assertRaises(AccessDeniedError):
            assign_role(target.id, "district_admin", assigned_by_id=unit.id)

    def test_reassignment_reuses_row(self):
        user = self.make_user("unit_admin")
        assign_role(user.id, "unit_admin")
        assign_role(user.id, "unit_admin")

        self.assertEqual(UserRoleAssignment.query.filter_by(user_id=user.id).count(), 1)


if __name__ == "__main__":
    unittest.main()
