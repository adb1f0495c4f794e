import json
import unittest

import httpx

from schemas.catalog import TemplateSemesterInput
from services.catalog_client import CatalogClient
from services.errors import (
    CatalogUnavailable,
    CourseInUse,
    CourseNotFound,
    DuplicateCourseCode,
    EmptyTemplate,
    ExternalDependencyError,
    InvalidUnits,
    TemplateNotFound,
)

COURSE = {"_id": "k1", "courseCode": "CS-101", "title": "Intro", "units": 3}


def _client(handler) -> CatalogClient:
    return CatalogClient(base_url="http://catalog.test", token="secret", timeout=5,
                         transport=httpx.MockTransport(handler))


def _error(status: int, code: str) -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": code, "message": code.lower()}})


class TestCourses(unittest.TestCase):

    def test_find_course_by_code(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=COURSE)

        course = _client(handler).find_course_by_code("CS-101")
        self.assertEqual((course.id, course.course_code, course.units), ("k1", "CS-101", 3))
        self.assertEqual(seen, {"path": "/courses/by-code/CS-101", "auth": "Bearer secret"})

    def test_course_code_is_escaped_in_the_path(self):
        seen = {}

        def handler(request):
            seen["raw_path"] = request.url.raw_path
            return httpx.Response(200, json=COURSE)

        _client(handler).find_course_by_code("CS/101?x#1")
        self.assertEqual(seen["raw_path"], b"/courses/by-code/CS%2F101%3Fx%231")

    def test_find_course_not_found_is_none(self):
        client = _client(lambda request: _error(404, "COURSE_NOT_FOUND"))
        self.assertIsNone(client.find_course_by_code("NOPE-1"))

    def test_list_courses_pagination(self):
        def handler(request):
            self.assertEqual(request.url.params["search"], "cs")
            self.assertEqual(request.url.params["limit"], "10")
            self.assertEqual(request.url.params["cursor"], "abc")
            return httpx.Response(200, json={"courses": [COURSE], "hasMore": True, "cursor": "def"})

        page = _client(handler).list_courses(search="cs", limit=10, cursor="abc")
        self.assertEqual(len(page.courses), 1)
        self.assertTrue(page.has_more)
        self.assertEqual(page.next_cursor, "def")

    def test_create_course_payload(self):
        def handler(request):
            body = json.loads(request.content)
            self.assertEqual(body, {"courseCode": "CS-101", "title": "Intro", "units": 3.0})
            return httpx.Response(201, json={"data": COURSE})

        course = _client(handler).create_course("CS-101", "Intro", 3)
        self.assertEqual(course.id, "k1")

    def test_error_codes_are_mapped(self):
        cases = {
            "DUPLICATE_COURSE_CODE": DuplicateCourseCode,
            "INVALID_UNITS": InvalidUnits,
            "COURSE_IN_USE": CourseInUse,
        }
        for code, exc_class in cases.items():
            with self.subTest(code=code):
                client = _client(lambda request, code=code: _error(400, code))
                with self.assertRaises(exc_class):
                    client.create_course("CS-101", "Intro", 3)

    def test_unknown_client_error(self):
        client = _client(lambda request: httpx.Response(400, text="bad"))
        with self.assertRaises(ExternalDependencyError):
            client.list_courses()


class TestTemplates(unittest.TestCase):

    def test_get_template(self):
        payload = {
            "_id": "t1",
            "name": "BSCS",
            "semesters": [{"yearLevel": 1, "semesterType": "first", "courses": [COURSE]}],
        }
        template = _client(lambda request: httpx.Response(200, json=payload)).get_template_by_id("t1")
        self.assertEqual(template.name, "BSCS")
        self.assertEqual(template.total_courses, 1)
        self.assertEqual(template.semesters[0].courses[0].course_code, "CS-101")

    def test_template_errors(self):
        with self.assertRaises(TemplateNotFound):
            _client(lambda request: _error(404, "TEMPLATE_NOT_FOUND")).get_template_by_id("t9")
        with self.assertRaises(CourseNotFound):
            _client(lambda request: _error(400, "COURSE_NOT_FOUND: CS-404")).get_template_by_id("t1")

    def test_create_template(self):
        def handler(request):
            body = json.loads(request.content)
            self.assertEqual(body["semesters"][0]["courseIds"], [])
            return _error(400, "EMPTY_TEMPLATE")

        with self.assertRaises(EmptyTemplate):
            _client(handler).create_template(
                "Empty", None, [TemplateSemesterInput(year_level=1, semester_type="first", course_ids=[])]
            )


class TestAvailability(unittest.TestCase):

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(CatalogUnavailable):
            _client(handler).list_courses()

    def test_server_error(self):
        with self.assertRaises(CatalogUnavailable):
            _client(lambda request: httpx.Response(503)).list_courses()

    def test_not_configured(self):
        client = CatalogClient(base_url="", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        self.assertFalse(client.enabled)
        with self.assertRaises(CatalogUnavailable):
            client.list_courses()


if __name__ == "__main__":
    unittest.main()
