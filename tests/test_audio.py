import io
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

import numpy as np
import soundfile as sf

from src.api import encode_wav, load_audio, save_audio
from src.api.audio import resample_audio


class TestAudioIO(unittest.TestCase):
    def test_encode_wav_is_mono_pcm16(self):
        data = encode_wav(np.linspace(-1.5, 1.5, 4410))
        info = sf.info(io.BytesIO(data))
        self.assertEqual(info.samplerate, 44100)
        self.assertEqual(info.channels, 1)
        self.assertEqual(info.frames, 4410)
        self.assertEqual(info.subtype, "PCM_16")
        decoded, _ = sf.read(io.BytesIO(data))
        self.assertLessEqual(np.max(np.abs(decoded)), 1.0)

    def test_save_audio_reports_duration(self):
        with TemporaryDirectory() as tmp_dir:
            result = save_audio(np.zeros(22050), Path(tmp_dir) / "nested" / "out")
            self.assertTrue(result["path"].endswith("out.wav"))
            self.assertTrue(Path(result["path"]).exists())
            self.assertAlmostEqual(result["duration_seconds"], 0.5)
            self.assertEqual(result["sample_rate"], 44100)

    def test_load_audio_downmixes_and_resamples(self):
        t = np.arange(22050) / 22050.0
        stereo = np.stack([np.sin(2 * np.pi * 220 * t), np.sin(2 * np.pi * 220 * t)], axis=1) * 0.5
        buffer = io.BytesIO()
        sf.write(buffer, stereo, 22050, format="WAV", subtype="FLOAT")
        mono = load_audio(buffer.getvalue())
        self.assertEqual(mono.ndim, 1)
        self.assertEqual(mono.shape[0], 44100)
        self.assertAlmostEqual(float(np.max(np.abs(mono))), 0.5, places=2)

    def test_resample_identity(self):
        values = np.arange(10.0)
        np.testing.assert_array_equal(resample_audio(values, 44100, 44100), values)


if __name__ == "__main__":
    unittest.main()
