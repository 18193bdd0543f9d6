import webbrowser

from agribridge.services import messaging
from agribridge.services.messaging import BrowserHandoff, RecordingHandoff


def test_browser_handoff_opens_tab(monkeypatch):
    opened = []
    monkeypatch.setattr(messaging.webbrowser, "open_new_tab", opened.append)

    BrowserHandoff().open("https://wa.me/+233533811757?text=hi")

    assert opened == ["https://wa.me/+233533811757?text=hi"]


def test_browser_handoff_failure_is_logged(monkeypatch):
    def broken(url):
        raise webbrowser.Error("no browser")

    monkeypatch.setattr(messaging.webbrowser, "open_new_tab", broken)

    BrowserHandoff().open("https://wa.me/+233533811757?text=hi")


def test_recording_handoff_keeps_links():
    handoff = RecordingHandoff()
    handoff.open("https://wa.me/1")
    handoff.open("https://wa.me/2")

    assert handoff.sent == ["https://wa.me/1", "https://wa.me/2"]
