"""
Minimal RBAC tests: role-based access control.
- Student token hitting teacher endpoint returns 403
- Teacher token hitting student endpoint returns 403
- Login issues tokens that authenticate /api/auth/me
"""
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import User


class RBACTests(TestCase):
    def setUp(self):
        self.client = APIClient()

        self.teacher = User.objects.create_user(
            email="teacher@test.az",
            password="pass123",
            full_name="Teacher",
            role="teacher",
        )
        self.student = User.objects.create_user(
            email="student@test.az",
            password="pass123",
            full_name="Student",
            role="student",
        )

    def _auth_header(self, user: User) -> dict:
        token = str(AccessToken.for_user(user))
        return {"HTTP_AUTHORIZATION": f"Bearer {token}"}

    def test_student_hitting_teacher_endpoint_returns_403(self):
        self.client.credentials(**self._auth_header(self.student))
        res = self.client.get("/api/teacher/coding/assignments")
        self.assertEqual(res.status_code, 403)

    def test_teacher_hitting_teacher_endpoint_returns_200(self):
        self.client.credentials(**self._auth_header(self.teacher))
        res = self.client.get("/api/teacher/coding/assignments")
        self.assertEqual(res.status_code, 200)

    def test_teacher_hitting_student_endpoint_returns_403(self):
        self.client.credentials(**self._auth_header(self.teacher))
        res = self.client.get("/api/student/coding/assignments")
        self.assertEqual(res.status_code, 403)

    def test_anonymous_returns_401(self):
        res = self.client.get("/api/student/coding/assignments")
        self.assertEqual(res.status_code, 401)


class AuthTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(
            email="login@test.az",
            password="pass123",
            full_name="Login User",
            role="student",
        )

    def test_login_and_me(self):
        res = self.client.post("/api/auth/login", {"email": "login@test.az", "password": "pass123"}, format="json")
        self.assertEqual(res.status_code, 200, res.content)
        data = res.json()
        self.assertIn("accessToken", data)
        self.assertIn("refreshToken", data)
        self.assertEqual(data["user"]["role"], "student")

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {data['accessToken']}")
        me = self.client.get("/api/auth/me")
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["email"], "login@test.az")
        self.assertEqual(me.json()["fullName"], "Login User")

    def test_wrong_password_returns_401(self):
        res = self.client.post("/api/auth/login", {"email": "login@test.az", "password": "nope"}, format="json")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["code"], "invalid_credentials")

    def test_missing_fields_returns_400(self):
        res = self.client.post("/api/auth/login", {"email": "login@test.az"}, format="json")
        self.assertEqual(res.status_code, 400)
