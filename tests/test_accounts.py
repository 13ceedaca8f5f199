"""Tests for the login / change-password collaborator."""
import unittest

from ghostlan.accounts import change_password, get_password_hash, login, verify_password
from ghostlan.schemas import ChangePasswordIn, LoginIn
from helpers import StoreTestCase


class TestPasswordHashing(unittest.TestCase):
    def test_hash_is_salted_and_verifiable(self):
        first, second = get_password_hash("pass123"), get_password_hash("pass123")

        self.assertNotEqual(first, second)
        self.assertNotIn("pass123", first)
        self.assertTrue(verify_password("pass123", first))
        self.assertFalse(verify_password("wrong", first))


class TestAccounts(StoreTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        hashed = get_password_hash("pass123")
        await self.store.seed(
            [{"id": "90001", "name": "Rajesh Verma", "role": "officer", "department": "HR", "password_hash": hashed}],
            [],
            [],
        )

    async def test_login(self):
        ok = await login(self.store, LoginIn(id="90001", password="pass123"))
        self.assertTrue(ok.success)
        self.assertEqual((ok.name, ok.role, ok.department), ("Rajesh Verma", "officer", "HR"))

        bad = await login(self.store, LoginIn(id="90001", password="nope"))
        self.assertFalse(bad.success)
        self.assertEqual(bad.message, "Invalid Credentials")

        unknown = await login(self.store, LoginIn(id="nobody", password="pass123"))
        self.assertFalse(unknown.success)

    async def test_change_password(self):
        wrong = await change_password(self.store, ChangePasswordIn(employeeId="90001", oldPassword="x", newPassword="y"))
        self.assertFalse(wrong.success)
        self.assertEqual(wrong.message, "Incorrect Old Password")

        done = await change_password(self.store, ChangePasswordIn(employeeId="90001", oldPassword="pass123", newPassword="s3cret"))
        self.assertTrue(done.success)
        self.assertTrue((await login(self.store, LoginIn(id="90001", password="s3cret"))).success)
        self.assertFalse((await login(self.store, LoginIn(id="90001", password="pass123"))).success)


if __name__ == "__main__":
    unittest.main()
