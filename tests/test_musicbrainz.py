import unittest
from unittest.mock import patch

from audio_sorter.config import MusicBrainzSettings
from audio_sorter.errors import TransportFailure
from audio_sorter.providers.musicbrainz import MusicBrainzGenreLookup, split_user_agent, top_tag


def _stub(response=None, error=None):
    calls = {"search": [], "useragent": []}

    class _MBStub:
        class NetworkError(Exception):
            pass

        class ResponseError(Exception):
            pass

        @staticmethod
        def set_useragent(*args, **kwargs) -> None:
            calls["useragent"].append((args, kwargs))

        @staticmethod
        def search_artists(**kwargs):
            calls["search"].append(kwargs)
            if error is not None:
                raise getattr(_MBStub, error)("dns")
            return response

    return _MBStub, calls


class TestTopTag(unittest.TestCase):
    def test_highest_count_wins(self) -> None:
        tags = [{"name": "electronic", "count": "3"}, {"name": "trance", "count": "11"}, {"name": "", "count": "99"}]
        self.assertEqual(top_tag(tags), "trance")

    def test_no_tags(self) -> None:
        self.assertIsNone(top_tag([]))


class TestSplitUserAgent(unittest.TestCase):
    def test_app_version_and_contact(self) -> None:
        self.assertEqual(
            split_user_agent("MySorter/2.1 ( me@example.com )"),
            ("MySorter", "2.1", "me@example.com"),
        )

    def test_app_and_contact_without_version(self) -> None:
        app, version, contact = split_user_agent("audio-sorter ( unknown@example.com )")
        self.assertEqual((app, contact), ("audio-sorter", "unknown@example.com"))
        self.assertTrue(version)

    def test_bare_email_becomes_contact(self) -> None:
        app, _, contact = split_user_agent("me@example.com")
        self.assertEqual((app, contact), ("audio-sorter", "me@example.com"))

    def test_free_text_becomes_contact(self) -> None:
        app, _, contact = split_user_agent("ops team, ops@example.com")
        self.assertEqual((app, contact), ("audio-sorter", "ops team, ops@example.com"))


class TestMusicBrainzGenreLookup(unittest.TestCase):
    def test_returns_top_tag_of_first_artist(self) -> None:
        stub, calls = _stub(
            {
                "artist-list": [
                    {"name": "Solar Drift", "tag-list": [{"name": "house", "count": "2"}, {"name": "trance", "count": "5"}]}
                ]
            }
        )
        with patch("audio_sorter.providers.musicbrainz.musicbrainzngs", stub):
            lookup = MusicBrainzGenreLookup(MusicBrainzSettings(userAgent="me@example.com"))
            outcome = lookup.lookup("Solar Drift")
        self.assertEqual(outcome.tag, "trance")
        self.assertEqual(outcome.hint, "artist=Solar Drift")
        self.assertEqual(calls["search"], [{"artist": "Solar Drift", "limit": 1}])
        self.assertEqual(calls["useragent"][0][1]["contact"], "me@example.com")

    def test_profile_user_agent_identifies_the_application(self) -> None:
        stub, calls = _stub({"artist-list": []})
        with patch("audio_sorter.providers.musicbrainz.musicbrainzngs", stub):
            MusicBrainzGenreLookup(MusicBrainzSettings(userAgent="MySorter/2.1 ( me@example.com )"))
        args, kwargs = calls["useragent"][0]
        self.assertEqual(args, ("MySorter", "2.1"))
        self.assertEqual(kwargs, {"contact": "me@example.com"})

    def test_no_match(self) -> None:
        stub, _ = _stub({"artist-list": []})
        with patch("audio_sorter.providers.musicbrainz.musicbrainzngs", stub):
            outcome = MusicBrainzGenreLookup(MusicBrainzSettings()).lookup("Nobody")
        self.assertIsNone(outcome.tag)
        self.assertEqual(outcome.hint, "no artist match")

    def test_network_errors_become_transport_failures(self) -> None:
        for error in ("NetworkError", "ResponseError"):
            stub, _ = _stub(error=error)
            with patch("audio_sorter.providers.musicbrainz.musicbrainzngs", stub):
                lookup = MusicBrainzGenreLookup(MusicBrainzSettings())
                with self.subTest(error=error), self.assertRaises(TransportFailure):
                    lookup.lookup("Solar Drift")


if __name__ == "__main__":
    unittest.main()
