from __future__ import annotations

import threading
import time
from unittest.mock import Mock

import requests
from django.core.cache import cache
from django.test import SimpleTestCase

from core.eligibility import DegreeEntry
from core.errors import FenixError
from core.fenix import FenixConfig, FenixService


def _response(payload: object) -> Mock:
    response = Mock(spec=requests.Response)
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _config(**overrides) -> FenixConfig:
    fields = {
        "api_base_url": "https://fenix.example/api",
        "oauth_base_url": "https://fenix.example/oauth",
        "client_id": "client",
        "client_secret": "secret",
        "redirect_url": "https://urna.example/login",
        "cache_ttl_seconds": 600,
        "request_timeout_seconds": 5,
    }
    fields.update(overrides)
    return FenixConfig(**fields)


DEGREES = [
    {"id": "123456", "acronym": "LEIC", "name": "Computer Science", "degreeType": {"name": "Bachelor"}},
    {"id": "654321", "acronym": "MEEC", "name": "Electrical Engineering", "type": "Master"},
]


class FenixServiceTests(SimpleTestCase):
    def setUp(self) -> None:
        super().setUp()
        cache.clear()
        self.addCleanup(cache.clear)
        self.session = Mock(spec=requests.Session)
        self.service = FenixService(_config(), session=self.session)

    def test_degree_catalog_is_cached(self) -> None:
        self.session.request.return_value = _response(DEGREES)

        degrees = self.service.get_degrees()
        again = self.service.get_degrees()

        self.assertEqual([d.acronym for d in degrees], ["LEIC", "MEEC"])
        self.assertEqual([d.degree_type for d in degrees], ["Bachelor", "Master"])
        self.assertEqual(again, degrees)
        self.session.request.assert_called_once()
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("GET", "https://fenix.example/api/degrees"))
        self.assertEqual(kwargs["timeout"], 5)

    def test_get_degree(self) -> None:
        self.session.request.return_value = _response(DEGREES)

        self.assertEqual(self.service.get_degree("654321").name, "Electrical Engineering")
        self.assertIsNone(self.service.get_degree("999999"))

    def test_concurrent_refresh_fetches_once(self) -> None:
        def _slow_request(*args, **kwargs):
            time.sleep(0.05)
            return _response(DEGREES)

        self.session.request.side_effect = _slow_request
        results: list[object] = []

        threads = [threading.Thread(target=lambda: results.append(self.service.get_degrees())) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(results), 6)
        self.assertEqual(self.session.request.call_count, 1)

    def test_active_year(self) -> None:
        self.session.request.return_value = _response({"academicYear": "2023/2024"})

        self.assertEqual(self.service.get_active_year(), "2023/2024")
        self.assertEqual(self.service.get_active_year(), "2023/2024")
        self.session.request.assert_called_once()

    def test_missing_active_year_is_an_error(self) -> None:
        self.session.request.return_value = _response({})

        with self.assertRaises(FenixError):
            self.service.get_active_year()

    def test_transport_failures_become_fenix_errors(self) -> None:
        self.session.request.side_effect = requests.exceptions.ConnectionError("down")

        with self.assertRaises(FenixError) as ctx:
            self.service.get_degrees()
        self.assertTrue(ctx.exception.retryable)

    def test_http_errors_become_fenix_errors(self) -> None:
        response = _response({})
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("503")
        self.session.request.return_value = response

        with self.assertRaises(FenixError):
            self.service.get_degrees()

        # Failures are not cached.
        self.session.request.return_value = _response(DEGREES)
        self.session.request.side_effect = None
        self.assertEqual(len(self.service.get_degrees()), 2)

    def test_search_user_in_degree(self) -> None:
        self.session.request.return_value = _response(
            {"items": [{"username": "ist1", "displayName": "Alice"}, {"username": "ist2"}]}
        )

        people = self.service.search_user_in_degree(access_token="tok", query="al", degree_id="123456")

        self.assertEqual([(p.username, p.display_name) for p in people], [("ist1", "Alice"), ("ist2", "")])
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("GET", "https://fenix.example/api/degrees/123456/students"))
        self.assertEqual(kwargs["params"], {"query": "al"})
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok")

    def test_authenticate_from_code(self) -> None:
        self.session.request.side_effect = [
            _response({"access_token": "tok"}),
            _response({"username": "ist1", "displayName": "Alice"}),
            _response(
                [
                    {"degree": {"id": "123456"}, "curricularYear": 2},
                    {"degree": {"id": "654321"}, "curricularYear": None},
                    {"degree": None, "curricularYear": 1},
                ]
            ),
        ]

        login = self.service.authenticate_from_code("the-code")

        self.assertEqual(login.access_token, "tok")
        self.assertEqual(login.user.username, "ist1")
        self.assertEqual(login.user.display_name, "Alice")
        self.assertEqual(login.user.degree_entries, (DegreeEntry("123456", 2),))
        token_call = self.session.request.call_args_list[0]
        self.assertEqual(token_call.args, ("POST", "https://fenix.example/oauth/access_token"))
        self.assertEqual(token_call.kwargs["params"]["code"], "the-code")

    def test_authenticate_without_access_token(self) -> None:
        self.session.request.return_value = _response({"error": "invalid_grant"})

        with self.assertRaises(FenixError):
            self.service.authenticate_from_code("bad-code")

    def test_person_without_username_is_a_fenix_error(self) -> None:
        self.session.request.side_effect = [
            _response({"access_token": "tok"}),
            _response({"displayName": "Alice"}),
            _response([]),
        ]

        with self.assertRaises(FenixError) as ctx:
            self.service.authenticate_from_code("the-code")
        self.assertTrue(ctx.exception.retryable)

    def test_unexpected_payload_shapes_are_fenix_errors(self) -> None:
        self.session.request.return_value = _response([{"username": "ist1"}])
        with self.assertRaises(FenixError):
            self.service.search_user_in_degree(access_token="tok", query="al", degree_id="123456")

        self.session.request.return_value = _response([{"acronym": "LEIC"}])
        with self.assertRaises(FenixError):
            self.service.get_degrees()

        self.session.request.return_value = _response(["2023/2024"])
        with self.assertRaises(FenixError):
            self.service.get_active_year()

        self.session.request.return_value = None
        self.session.request.side_effect = [
            _response({"access_token": "tok"}),
            _response({"username": "ist1"}),
            _response([{"degree": "123456", "curricularYear": "first"}]),
        ]
        with self.assertRaises(FenixError):
            self.service.authenticate_from_code("the-code")

    def test_public_config_hides_the_secret(self) -> None:
        public = self.service.config.to_public_dict()

        self.assertNotIn("secret", public.values())
        self.assertEqual(public["oauth_authorize_url"], "https://fenix.example/oauth/userdialog")
