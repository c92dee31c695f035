import json
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from src.api import notes_from_beats, parse_score
from src.engine.errors import RequestError
from src.engine.score import Note


class TestParseScore(unittest.TestCase):
    """Tests for parse_score API."""

    def setUp(self) -> None:
        self.request = {
            "tempo": 100,
            "notes": [
                {
                    "alias": "- a",
                    "pitch": 60,
                    "start_time": 0,
                    "duration": 500,
                    "pitchbend": [{"offset": 100, "value": 0.5}],
                    "flags": "B40",
                },
                {"alias": "a i", "pitch": 62, "start_time": 500, "duration": 250, "volume": 80},
                {"alias": "R", "pitch": 60, "start_time": 750, "duration": 250},
            ],
        }

    def test_parse_dict(self):
        score = parse_score(self.request)
        self.assertEqual(score.tempo, 100.0)
        self.assertEqual(len(score.notes), 3)
        first = score.notes[0]
        self.assertIsInstance(first, Note)
        self.assertTrue(first.is_initial)
        self.assertEqual(first.pitchbend[0].value, 0.5)
        self.assertEqual(first.flags, "B40")
        self.assertEqual(score.notes[1].volume, 80.0)
        self.assertEqual(score.notes[1].end_time_ms, 750.0)
        self.assertTrue(score.notes[2].is_silence)

    def test_parse_json_text_and_file(self):
        text = json.dumps(self.request)
        self.assertEqual(parse_score(text), parse_score(self.request))
        with TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "score.json"
            path.write_text(text, encoding="utf-8")
            self.assertEqual(parse_score(path).notes, parse_score(self.request).notes)

    def test_defaults(self):
        score = parse_score({"notes": [{"alias": "a", "pitch": 60, "start_time": 0, "duration": 10}]})
        note = score.notes[0]
        self.assertEqual(score.tempo, 120.0)
        self.assertEqual(note.pitchbend, ())
        self.assertEqual((note.velocity, note.volume, note.modulation), (100.0, 100.0, 0.0))

    def test_rejects_bad_requests(self):
        bad_requests = [
            "{not json",
            [],
            {"notes": []},
            {"notes": "abc"},
            {"notes": [{"pitch": 60, "start_time": 0, "duration": 10}]},
            {"notes": [{"alias": "a", "pitch": 60.5, "start_time": 0, "duration": 10}]},
            {"notes": [{"alias": "a", "pitch": 60, "start_time": 0, "duration": -1}]},
            {"notes": [{"alias": "a", "pitch": 60, "start_time": "0", "duration": 10}]},
            {"notes": [{"alias": "a", "pitch": 60, "start_time": 0, "duration": 10, "pitchbend": [{"offset": 1}]}]},
        ]
        for request in bad_requests:
            with self.subTest(request=request):
                with self.assertRaises(RequestError):
                    parse_score(request)

    def test_error_names_the_field(self):
        with self.assertRaises(RequestError) as ctx:
            parse_score({"notes": [{"alias": "a", "pitch": True, "start_time": 0, "duration": 10}]})
        self.assertEqual(ctx.exception.field, "notes[0].pitch")


class TestNotesFromBeats(unittest.TestCase):
    def test_converts_beats_and_sorts(self):
        score = notes_from_beats(
            [
                {"alias": "b", "midi_pitch": 64, "start_beat": 1.0, "duration_beat": 0.5},
                {"alias": "a", "midi_pitch": 60, "start_beat": 0.0, "duration_beat": 1.0},
            ],
            tempo=120.0,
        )
        self.assertEqual([note.alias for note in score.notes], ["a", "b"])
        self.assertEqual(score.notes[1].start_time_ms, 500.0)
        self.assertEqual(score.notes[1].duration_ms, 250.0)
        self.assertEqual(score.notes[0].end_time_ms, score.notes[1].start_time_ms)

    def test_rejects_non_positive_tempo(self):
        with self.assertRaises(RequestError):
            notes_from_beats([{"alias": "a", "midi_pitch": 60}], tempo=0.0)


if __name__ == "__main__":
    unittest.main()
