from dataclasses import replace

from iszcloud.http_client import HttpClient
from iszcloud.models import User
from iszcloud.query import build_query_url, query_statuses, render_results

from .conftest import FakeSession, status_body


SERVER = "https://isz.example.com"


def url_for(mobile, code):
    return f"{SERVER}/service/apply-win-query/{mobile}/{code}?cityNo=sz"


def make_client(settings, answers):
    client = HttpClient(settings)
    client.s = FakeSession(answers)
    return client


def test_build_query_url():
    assert build_query_url(SERVER, User("13800000000", "123456")) == (
        "https://isz.example.com/service/apply-win-query/13800000000/123456?cityNo=sz"
    )


def test_build_query_url_escapes_path_segments():
    assert build_query_url(SERVER, User("138 00", "a/b")) == (
        "https://isz.example.com/service/apply-win-query/138%2000/a%2Fb?cityNo=sz"
    )


def test_all_users_answered_in_order(settings):
    client = make_client(settings, {
        url_for("111", "c1"): status_body(mobile="111"),
        url_for("222", "c2"): status_body(status="FAIL", mobile="222"),
    })

    result = query_statuses(client, settings)

    assert [r.data.mobile for r in result] == ["111", "222"]
    assert [url for url, _ in client.s.requested] == [url_for("111", "c1"), url_for("222", "c2")]


def test_network_failure_skips_only_that_user(settings):
    users = (User("111", "c1"), User("222", "c2"), User("333", "c3"))
    settings = replace(settings, users=users)
    client = make_client(settings, {
        url_for("111", "c1"): status_body(mobile="111"),
        url_for("333", "c3"): status_body(mobile="333"),
    })

    result = query_statuses(client, settings)

    assert [r.data.mobile for r in result] == ["111", "333"]
    assert len(client.s.requested) == 3


def test_bad_json_skips_user(settings):
    client = make_client(settings, {
        url_for("111", "c1"): b"<html>gateway timeout</html>",
        url_for("222", "c2"): status_body(mobile="222"),
    })

    result = query_statuses(client, settings)

    assert [r.data.mobile for r in result] == ["222"]


def test_everything_fails_returns_empty_list(settings):
    client = make_client(settings, {})

    assert query_statuses(client, settings) == []


def test_no_users(settings):
    client = make_client(settings, {})

    assert query_statuses(client, replace(settings, users=())) == []
    assert client.s.requested == []


def test_render_results(settings):
    client = make_client(settings, {
        url_for("111", "c1"): status_body(mobile="111", name="A", sendNo="S1"),
        url_for("222", "c2"): status_body(status="FAIL", mobile="222", name="B", address="X"),
    })

    body = render_results(query_statuses(client, settings))

    assert body == "[\n[中奖通知]恭喜你抽中奖了\n A 111 PAYED S1\n \n[再接再厉] B 222 X FAIL\n]"


def test_render_empty():
    assert render_results([]) == "[]"


def test_wrongly_typed_answer_skips_user(settings):
    client = make_client(settings, {
        url_for("111", "c1"): b'{"success": "true", "data": {"status": "PAYED", "mobile": "111"}}',
        url_for("222", "c2"): status_body(mobile="222"),
    })

    result = query_statuses(client, settings)

    assert [r.data.mobile for r in result] == ["222"]
