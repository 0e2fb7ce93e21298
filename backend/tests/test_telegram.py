import json

import httpx
import pytest

from waveping.core.errors import ConfigurationError
from waveping.services.telegram import TelegramChannel, split_message


def test_short_message_is_one_chunk():
    assert split_message("hello", 4096) == ["hello"]


def test_split_at_line_boundaries():
    text = "\n".join(f"line {i:02d}" for i in range(10))  # 7 chars per line
    chunks = split_message(text, 20)
    assert all(len(c) <= 20 for c in chunks)
    assert "\n".join(chunks) == text
    assert chunks[0] == "line 00\nline 01"


def test_overlong_line_is_force_split():
    chunks = split_message("x" * 45, 20)
    assert chunks == ["x" * 20, "x" * 20, "x" * 5]


def test_blank_lines_survive_splitting():
    text = "a" * 10 + "\n\n\n" + "b" * 10 + "\n\n" + "c" * 10
    chunks = split_message(text, 12)
    assert all(len(c) <= 12 for c in chunks)
    assert "\n".join(chunks) == text


def test_chunk_may_fill_the_limit_exactly():
    assert split_message("x" * 8 + "\nyyy", 8) == ["x" * 8, "yyy"]
    assert split_message("abcd\nefg\nh", 8) == ["abcd\nefg", "h"]


def _channel(handler, **kw):
    return TelegramChannel("123:abc", transport=httpx.MockTransport(handler), **kw)


def test_send_posts_html_with_buttons():
    seen = []

    def handler(request):
        seen.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"ok": True, "result": {}})

    buttons = [[{"text": "Book", "url": "https://example.com"}]]
    assert _channel(handler).send(42, "<b>hi</b>", buttons) is True
    path, payload = seen[0]
    assert path == "/bot123:abc/sendMessage"
    assert payload["chat_id"] == 42
    assert payload["parse_mode"] == "HTML"
    assert payload["reply_markup"] == {"inline_keyboard": buttons}


def test_long_message_buttons_only_on_last_chunk():
    payloads = []

    def handler(request):
        payloads.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True})

    text = "\n".join("y" * 200 for _ in range(5))
    assert _channel(handler, max_chars=450).send(7, text, [[{"text": "Go", "url": "https://x"}]])
    assert len(payloads) == 3
    assert "reply_markup" not in payloads[0]
    assert payloads[0]["disable_notification"] is True
    assert "reply_markup" in payloads[-1]


@pytest.mark.parametrize("status", [400, 403, 429, 500])
def test_non_200_is_a_failed_send(status):
    assert _channel(lambda request: httpx.Response(status, text="nope")).send(1, "hi") is False


def test_ok_false_is_a_failed_send():
    assert _channel(lambda request: httpx.Response(200, json={"ok": False})).send(1, "hi") is False


def test_timeout_is_a_failed_send():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    assert _channel(handler).send(1, "hi") is False


def test_later_chunk_failure_still_counts_as_delivered():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(200 if len(calls) == 1 else 502, json={"ok": True})

    text = "\n".join("z" * 200 for _ in range(4))
    assert _channel(handler, max_chars=300).send(1, text) is True
    assert len(calls) == 2


def test_first_chunk_failure_fails_the_send():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(500, text="nope")

    text = "\n".join("z" * 200 for _ in range(4))
    assert _channel(handler, max_chars=300).send(1, text) is False
    assert len(calls) == 1


def test_blank_message_is_not_posted():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(200, json={"ok": True})

    assert _channel(handler).send(1, " \n\n ") is False
    assert calls == []


def test_missing_token_is_configuration_error():
    with pytest.raises(ConfigurationError):
        TelegramChannel("  ")
